"""Audit store interface and in-memory implementation.

This module defines the persistence boundary of the auditing engine.
From the engine's side the store is append-only: there is no update or
delete operation.

Classes:
    AuditStore: Protocol every store implements
    InMemoryAuditStore: Thread-safe in-memory store for tests and embedding

Example:
    >>> store = InMemoryAuditStore()
    >>> await store.append(entry)
    >>> await store.latest_version("GeneralModel", "1")
    1
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Protocol

from audit_trail.audit.errors import StorageError
from audit_trail.audit.models import AuditEntry

logger = logging.getLogger(__name__)


class AuditStore(Protocol):
    """Persistence boundary consumed by AuditTrailRecorder."""

    async def append(self, entry: AuditEntry) -> None:
        """Persist an entry. Raises StorageError on failure."""
        ...

    async def latest_version(self, record_type: str, record_id: str) -> int:
        """Return the highest stored version of a record, 0 if none."""
        ...

    async def list_for(self, record_type: str, record_id: str) -> list[AuditEntry]:
        """Return a record's entries ordered by version ascending."""
        ...


class InMemoryAuditStore:
    """Thread-safe in-memory audit store.

    Keeps entries in per-record lists. An entry whose version does not exceed
    the record's latest stored version is rejected with StorageError, so a
    lost version race never produces duplicate versions. Entries are copied
    on the way in and out, so callers cannot edit the stored history.

    Attributes:
        _entries: Entries keyed by (record_type, record_id), version ascending.
        _lock: Threading lock for thread-safe access.
    """

    def __init__(self) -> None:
        """Initialize an empty audit store."""
        self._entries: dict[tuple[str, str], list[AuditEntry]] = defaultdict(list)
        self._lock = threading.Lock()

    async def append(self, entry: AuditEntry) -> None:
        """Append an entry to its record's history.

        Raises:
            StorageError: If the entry's version is not newer than the latest.
        """
        key = (entry.record_type, entry.record_id)
        with self._lock:
            history = self._entries[key]
            latest = history[-1].version if history else 0
            if entry.version <= latest:
                raise StorageError(
                    f"Version {entry.version} already taken for "
                    f"{entry.record_type}#{entry.record_id} (latest={latest})",
                    record_type=entry.record_type,
                    record_id=entry.record_id,
                )
            history.append(entry.model_copy(deep=True))

        logger.debug(
            "Stored audit entry: record=%s#%s, action=%s, version=%s",
            entry.record_type,
            entry.record_id,
            entry.action.value,
            entry.version,
        )

    async def latest_version(self, record_type: str, record_id: str) -> int:
        with self._lock:
            history = self._entries.get((record_type, str(record_id)))
            return history[-1].version if history else 0

    async def list_for(self, record_type: str, record_id: str) -> list[AuditEntry]:
        with self._lock:
            history = self._entries.get((record_type, str(record_id)), [])
            return [entry.model_copy(deep=True) for entry in history]

    def count(self) -> int:
        """Return the total number of stored entries."""
        with self._lock:
            return sum(len(history) for history in self._entries.values())

    def clear(self) -> None:
        """Clear all entries.

        Used primarily for testing.
        """
        with self._lock:
            self._entries.clear()


__all__ = ["AuditStore", "InMemoryAuditStore"]
