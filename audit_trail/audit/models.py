"""Core data structures for the auditing engine.

Classes:
    AuditAction: Lifecycle events that can be audited (create, update, destroy)
    AuditEntry: Immutable, versioned record of one audited lifecycle event

An AuditEntry references the audited record by type and id only. The record
may be destroyed later while its history remains queryable.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuditAction(str, Enum):
    """Lifecycle events eligible for auditing.

    CREATE: Record was inserted; changes hold a snapshot of the new state
    UPDATE: Record was modified; changes hold (old, new) pairs
    DESTROY: Record was deleted; changes hold a snapshot of the final state
    """

    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


ALL_ACTIONS: frozenset[AuditAction] = frozenset(AuditAction)


class AuditEntry(BaseModel):
    """Immutable record of one audited lifecycle event.

    Attributes:
        id: Unique identifier of the entry itself.
        record_type: Entity type of the audited record.
        record_id: Identifier of the audited record, normalised to str.
        action: The audited lifecycle action.
        version: Position in the record's history, starting at 1.
        changes: Snapshot (create/destroy) or (old, new) pairs (update),
            restricted to permitted columns.
        actor_id: Identity that performed the action, if known.
        comment: Free-text annotation supplied with the mutation, verbatim.
        created_at: When the entry was built (UTC).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: UUID = Field(default_factory=uuid4)
    record_type: str
    record_id: str
    action: AuditAction
    version: int = Field(ge=1)
    changes: dict[str, Any] = Field(default_factory=dict)
    actor_id: str | None = None
    comment: str | None = None
    created_at: datetime

    @field_validator("record_id", "actor_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def changed_attributes(self) -> list[str]:
        """Return the attribute names present in this entry's changes."""
        return list(self.changes)


__all__ = ["ALL_ACTIONS", "AuditAction", "AuditEntry"]
