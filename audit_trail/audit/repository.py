"""Audit repository for persisting and querying audit entries.

This module provides the AuditRepository class, the SQLAlchemy implementation
of AuditStore:
- append: Insert an entry inside the caller's transaction
- latest_version: Highest stored version of a record
- list_for: A record's entries in version order
- query: Entries across records with filters and pagination

The repository flushes but never commits. The caller runs the mutation and
the audit insert in one transaction, so both commit or both roll back.
A unique constraint on (record_type, record_id, version) turns a lost
version race into a StorageError instead of a duplicate version.

Changes are stored as JSON. Update pairs are stored as two-element lists and
decoded back to (old, new) tuples. Values JSON cannot represent (Decimal,
dates and times, UUID, Enum, bytes, tuples, sets, dicts with non-string keys)
are stored as tagged objects and rebuilt with their original type.
"""

import base64
import importlib
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from audit_trail.audit.errors import StorageError
from audit_trail.audit.models import AuditAction, AuditEntry
from audit_trail.models.audit_record import AuditRecord

_TYPE_KEY = "__type__"


def _serialize_value(value: Any) -> Any:
    """Serialize a value for JSON storage.

    JSON-native values are stored as is. Other supported values are wrapped
    in a {"__type__": tag, ...} object so _deserialize_value can rebuild the
    original type.

    Args:
        value: The value to serialize.

    Returns:
        A JSON-serializable representation of the value.

    Raises:
        TypeError: If the value has no JSON representation.
    """
    if isinstance(value, Enum):
        cls = type(value)
        return {
            _TYPE_KEY: "enum",
            "class": f"{cls.__module__}:{cls.__qualname__}",
            "value": _serialize_value(value.value),
        }
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, Decimal):
        return {_TYPE_KEY: "decimal", "value": str(value)}
    # datetime is a subclass of date
    if isinstance(value, datetime):
        return {_TYPE_KEY: "datetime", "value": value.isoformat()}
    if isinstance(value, date):
        return {_TYPE_KEY: "date", "value": value.isoformat()}
    if isinstance(value, time):
        return {_TYPE_KEY: "time", "value": value.isoformat()}
    if isinstance(value, UUID):
        return {_TYPE_KEY: "uuid", "value": str(value)}
    if isinstance(value, bytes):
        return {_TYPE_KEY: "bytes", "value": base64.b64encode(value).decode("ascii")}
    if isinstance(value, list):
        return [_serialize_value(item) for item in value]
    if isinstance(value, tuple):
        return {_TYPE_KEY: "tuple", "value": [_serialize_value(item) for item in value]}
    if isinstance(value, frozenset):
        return {_TYPE_KEY: "frozenset", "value": [_serialize_value(item) for item in value]}
    if isinstance(value, set):
        return {_TYPE_KEY: "set", "value": [_serialize_value(item) for item in value]}
    if isinstance(value, dict):
        if _TYPE_KEY not in value and all(isinstance(key, str) for key in value):
            return {key: _serialize_value(item) for key, item in value.items()}
        # Non-string keys, or a key that would read as a type tag
        return {
            _TYPE_KEY: "dict",
            "value": [[_serialize_value(key), _serialize_value(item)] for key, item in value.items()],
        }
    raise TypeError(f"Cannot store value of type {type(value).__name__} in an audit entry")


def _resolve_enum(path: str) -> type[Enum]:
    module_name, _, qualname = path.partition(":")
    target: Any = importlib.import_module(module_name)
    for part in qualname.split("."):
        target = getattr(target, part)
    if not (isinstance(target, type) and issubclass(target, Enum)):
        raise ValueError(f"{path} is not an Enum")
    return target


def _deserialize_value(value: Any) -> Any:
    """Rebuild a value stored by _serialize_value.

    Raises:
        ValueError: If a type tag is unknown or its payload is malformed.
    """
    if isinstance(value, list):
        return [_deserialize_value(item) for item in value]
    if not isinstance(value, dict):
        return value
    if _TYPE_KEY not in value:
        return {key: _deserialize_value(item) for key, item in value.items()}

    tag = value[_TYPE_KEY]
    payload = value.get("value")
    if tag == "enum":
        return _resolve_enum(value["class"])(_deserialize_value(payload))
    if tag == "decimal":
        return Decimal(payload)
    if tag == "datetime":
        return datetime.fromisoformat(payload)
    if tag == "date":
        return date.fromisoformat(payload)
    if tag == "time":
        return time.fromisoformat(payload)
    if tag == "uuid":
        return UUID(payload)
    if tag == "bytes":
        return base64.b64decode(payload)
    if tag == "tuple":
        return tuple(_deserialize_value(item) for item in payload)
    if tag == "frozenset":
        return frozenset(_deserialize_value(item) for item in payload)
    if tag == "set":
        return {_deserialize_value(item) for item in payload}
    if tag == "dict":
        return {_deserialize_value(key): _deserialize_value(item) for key, item in payload}
    raise ValueError(f"Unknown stored value type: {tag!r}")


def encode_changes(action: AuditAction, changes: dict[str, Any]) -> dict[str, Any]:
    """Encode an entry's changes for the JSON column.

    Raises:
        TypeError: If a value has no JSON representation.
    """
    if action is AuditAction.UPDATE:
        return {
            key: [_serialize_value(old), _serialize_value(new)]
            for key, (old, new) in changes.items()
        }
    return {key: _serialize_value(value) for key, value in changes.items()}


def decode_changes(action: AuditAction, payload: dict[str, Any] | None) -> dict[str, Any]:
    """Decode the JSON column back into an entry's changes.

    Raises:
        ValueError: If the payload holds an unknown type tag.
    """
    if not payload:
        return {}
    if action is AuditAction.UPDATE:
        return {
            key: (_deserialize_value(pair[0]), _deserialize_value(pair[1]))
            for key, pair in payload.items()
        }
    return {key: _deserialize_value(value) for key, value in payload.items()}


@dataclass
class AuditQueryFilters:
    """Filter parameters for querying audit entries.

    Attributes:
        record_type: Filter by entity type
        record_id: Filter by specific record ID
        action: Filter by lifecycle action
        actor_id: Filter by actor ID
        start_time: Filter entries created at or after this time
        end_time: Filter entries created at or before this time
        offset: Number of records to skip (for pagination)
        limit: Maximum number of records to return
    """

    record_type: str | None = None
    record_id: str | None = None
    action: AuditAction | None = None
    actor_id: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    offset: int = 0
    limit: int = 100


class AuditRepository:
    """Repository for audit entry database operations.

    Implements the AuditStore protocol on the `audits` table.

    Args:
        session: SQLAlchemy async session owned by the caller
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with an async session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self._session = session

    async def append(self, entry: AuditEntry) -> None:
        """Insert an audit entry within the current transaction.

        Args:
            entry: The audit entry to persist

        Raises:
            StorageError: If the insert fails, including a duplicate version
                or a value that cannot be stored as JSON
        """
        try:
            record = AuditRecord(
                entry_id=str(entry.id),
                record_type=entry.record_type,
                record_id=entry.record_id,
                action=entry.action.value,
                version=entry.version,
                audited_changes=encode_changes(entry.action, entry.changes),
                actor_id=entry.actor_id,
                comment=entry.comment,
                created_at=entry.created_at,
            )
            self._session.add(record)
            await self._session.flush()
        except (SQLAlchemyError, TypeError) as exc:
            raise StorageError(
                f"Failed to append audit entry version {entry.version} for "
                f"{entry.record_type}#{entry.record_id}: {exc}",
                record_type=entry.record_type,
                record_id=entry.record_id,
            ) from exc

    async def latest_version(self, record_type: str, record_id: str) -> int:
        """Return the highest stored version of a record, 0 if none.

        Raises:
            StorageError: If the lookup fails
        """
        query = select(func.max(AuditRecord.version)).where(
            AuditRecord.record_type == record_type,
            AuditRecord.record_id == str(record_id),
        )
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to read latest audit version for {record_type}#{record_id}: {exc}",
                record_type=record_type,
                record_id=str(record_id),
            ) from exc
        return result.scalar() or 0

    async def list_for(self, record_type: str, record_id: str) -> list[AuditEntry]:
        """Return a record's entries ordered by version ascending.

        Raises:
            StorageError: If the lookup fails
        """
        query = (
            select(AuditRecord)
            .where(
                AuditRecord.record_type == record_type,
                AuditRecord.record_id == str(record_id),
            )
            .order_by(AuditRecord.version)
        )
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to list audit entries for {record_type}#{record_id}: {exc}",
                record_type=record_type,
                record_id=str(record_id),
            ) from exc
        return [self._record_to_entry(row) for row in result.scalars().all()]

    async def query(self, filters: AuditQueryFilters) -> list[AuditEntry]:
        """Query audit entries with filters and pagination.

        Args:
            filters: Filter parameters for the query

        Returns:
            Matching entries, newest first
        """
        query = select(AuditRecord)

        if filters.record_type is not None:
            query = query.where(AuditRecord.record_type == filters.record_type)

        if filters.record_id is not None:
            query = query.where(AuditRecord.record_id == str(filters.record_id))

        if filters.action is not None:
            query = query.where(AuditRecord.action == filters.action.value)

        if filters.actor_id is not None:
            query = query.where(AuditRecord.actor_id == filters.actor_id)

        if filters.start_time is not None:
            query = query.where(AuditRecord.created_at >= filters.start_time)

        if filters.end_time is not None:
            query = query.where(AuditRecord.created_at <= filters.end_time)

        query = (
            query.order_by(AuditRecord.created_at.desc(), AuditRecord.id.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )

        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to query audit entries: {exc}") from exc
        return [self._record_to_entry(row) for row in result.scalars().all()]

    def _record_to_entry(self, record: AuditRecord) -> AuditEntry:
        """Convert a database row to an AuditEntry.

        Args:
            record: Mapped AuditRecord row

        Returns:
            The equivalent immutable AuditEntry

        Raises:
            StorageError: If the stored changes cannot be decoded
        """
        action = AuditAction(record.action)
        try:
            changes = decode_changes(action, record.audited_changes)
        except (ValueError, ImportError, AttributeError, KeyError, TypeError) as exc:
            raise StorageError(
                f"Failed to decode audit entry version {record.version} for "
                f"{record.record_type}#{record.record_id}: {exc}",
                record_type=record.record_type,
                record_id=record.record_id,
            ) from exc

        created_at = record.created_at
        # SQLite drops the offset of timezone-aware columns
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        return AuditEntry(
            id=UUID(record.entry_id),
            record_type=record.record_type,
            record_id=record.record_id,
            action=action,
            version=record.version,
            changes=changes,
            actor_id=record.actor_id,
            comment=record.comment,
            created_at=created_at,
        )


__all__ = [
    "AuditQueryFilters",
    "AuditRepository",
    "decode_changes",
    "encode_changes",
]
