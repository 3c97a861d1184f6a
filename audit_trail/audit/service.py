"""Audit trail recorder.

This module provides the AuditTrailRecorder class, which turns lifecycle
notifications into persisted, versioned audit entries.

Classes:
    AuditTrailRecorder: Decides whether an event is audited, computes its
        changes, assigns the next version and appends the entry

The recorder must be called inside the same transaction (or critical section)
as the mutation it audits. Version assignment reads the latest version and
then writes; callers serialize mutations of one record, for example with the
record store's row locks.
"""

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from audit_trail.audit.config import AuditConfigurationRegistry, permitted_columns
from audit_trail.audit.diff import compute_changes
from audit_trail.audit.history import AttributeChange, history_for, state_at
from audit_trail.audit.models import AuditAction, AuditEntry
from audit_trail.audit.store import AuditStore


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class AuditTrailRecorder:
    """Record audit entries for lifecycle events of audited records.

    For each notification the recorder:
    - Skips actions the entity type does not audit
    - Restricts the states to the permitted columns
    - Suppresses updates that changed no permitted attribute
    - Assigns version = latest stored version + 1
    - Appends exactly one entry to the store

    Store failures propagate unchanged; the recorder never retries.

    Args:
        store: AuditStore receiving the entries
        registry: AuditConfigurationRegistry with per-entity-type settings
        clock: Callable returning the creation timestamp (default: UTC now)

    Example:
        >>> recorder = AuditTrailRecorder(store=InMemoryAuditStore(), registry=registry)
        >>> entry = await recorder.record(
        ...     "GeneralModel",
        ...     42,
        ...     AuditAction.UPDATE,
        ...     before_state={"name": "A"},
        ...     after_state={"name": "B"},
        ...     actor_id="user-1",
        ...     comment="rename",
        ... )
        >>> entry.changes
        {'name': ('A', 'B')}
    """

    def __init__(
        self,
        store: AuditStore,
        registry: AuditConfigurationRegistry,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._clock = clock or _utcnow

    @property
    def store(self) -> AuditStore:
        return self._store

    @property
    def registry(self) -> AuditConfigurationRegistry:
        return self._registry

    async def record(
        self,
        entity_type: str,
        record_id: Any,
        action: AuditAction | str,
        before_state: Mapping[str, Any] | None = None,
        after_state: Mapping[str, Any] | None = None,
        actor_id: str | None = None,
        comment: str | None = None,
    ) -> AuditEntry | None:
        """Record one lifecycle event.

        Args:
            entity_type: Entity type of the mutated record
            record_id: Identifier of the mutated record
            action: Lifecycle action (create, update, destroy)
            before_state: Attribute map before the mutation (update, destroy)
            after_state: Attribute map after the mutation (create, update)
            actor_id: Identity that performed the mutation, resolved by the caller
            comment: Free-text annotation, stored verbatim

        Returns:
            The persisted AuditEntry, or None when the action is not audited
            or an update changed no permitted attribute

        Raises:
            ValueError: If a state required by the action is missing
            StorageError: If the store fails to look up or append
        """
        action = AuditAction(action)
        config = self._registry.get_configuration(entity_type)

        if not config.audits(action):
            return None

        if config.attribute_names is not None:
            schema: Iterable[str] = config.attribute_names
        else:
            schema = {*(before_state or {}), *(after_state or {})}
        permitted = permitted_columns(config, schema)

        changes = compute_changes(action, before_state, after_state, permitted)
        if changes is None:
            return None

        record_key = str(record_id)
        version = await self._store.latest_version(entity_type, record_key) + 1

        entry = AuditEntry(
            record_type=entity_type,
            record_id=record_key,
            action=action,
            version=version,
            changes=changes,
            actor_id=actor_id,
            comment=comment,
            created_at=self._clock(),
        )
        await self._store.append(entry)
        return entry

    async def entries_for(self, entity_type: str, record_id: Any) -> list[AuditEntry]:
        """Return a record's entries ordered by version ascending."""
        return await self._store.list_for(entity_type, str(record_id))

    async def latest_version(self, entity_type: str, record_id: Any) -> int:
        return await self._store.latest_version(entity_type, str(record_id))

    async def history_for(
        self,
        entity_type: str,
        record_id: Any,
        attributes: Iterable[str],
    ) -> list[AttributeChange]:
        """Return the values the given attributes took over the record's history."""
        entries = await self.entries_for(entity_type, record_id)
        return history_for(entries, attributes)

    async def state_at(self, entity_type: str, record_id: Any, version: int) -> dict[str, Any]:
        """Reconstruct the audited state of a record right after a version."""
        entries = await self.entries_for(entity_type, record_id)
        return state_at(entries, version)


__all__ = ["AuditTrailRecorder"]
