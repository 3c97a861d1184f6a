"""Lifecycle notification interface for record stores.

The record store calls these methods synchronously around its own mutation,
inside the mutation's transaction. The acting identity is resolved by the
caller before the context is entered; nothing is read from ambient state.

Classes:
    ActorResolver: Protocol for callables returning the current actor id
    AuditContext: Async context manager binding an actor to a recorder

Example:
    >>> async with AuditContext(recorder, actor_id="user-456") as ctx:
    ...     await ctx.created("GeneralModel", 1, {"id": 1, "name": "A"})
    ...     await ctx.updated(
    ...         "GeneralModel",
    ...         1,
    ...         before={"id": 1, "name": "A"},
    ...         after={"id": 1, "name": "B"},
    ...         comment="Renamed on request",
    ...     )
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from audit_trail.audit.models import AuditAction, AuditEntry

if TYPE_CHECKING:
    from audit_trail.audit.service import AuditTrailRecorder


class ActorResolver(Protocol):
    """Callable returning the identity of the current operation's initiator."""

    def __call__(self) -> str | None: ...


class AuditContext:
    """Async context manager for actor-scoped auditing.

    Stores the actor once and forwards each lifecycle notification to
    AuditTrailRecorder.record() with that actor attached. The comment is
    per call, scoped to a single mutating operation.

    Args:
        recorder: AuditTrailRecorder receiving the notifications.
        actor_id: Identity performing the mutations, or None.
    """

    def __init__(self, recorder: AuditTrailRecorder, actor_id: str | None = None) -> None:
        self._recorder = recorder
        self.actor_id = actor_id

    @classmethod
    def from_resolver(cls, recorder: AuditTrailRecorder, resolver: ActorResolver) -> AuditContext:
        """Build a context whose actor is resolved once, now."""
        return cls(recorder, actor_id=resolver())

    async def __aenter__(self) -> AuditContext:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        pass

    async def created(
        self,
        entity_type: str,
        record_id: Any,
        attributes: Mapping[str, Any],
        comment: str | None = None,
    ) -> AuditEntry | None:
        """Notify that a record was created with the given attributes."""
        return await self._recorder.record(
            entity_type,
            record_id,
            AuditAction.CREATE,
            after_state=attributes,
            actor_id=self.actor_id,
            comment=comment,
        )

    async def updated(
        self,
        entity_type: str,
        record_id: Any,
        before: Mapping[str, Any],
        after: Mapping[str, Any],
        comment: str | None = None,
    ) -> AuditEntry | None:
        """Notify that a record changed from `before` to `after`.

        Returns None when no permitted attribute changed.
        """
        return await self._recorder.record(
            entity_type,
            record_id,
            AuditAction.UPDATE,
            before_state=before,
            after_state=after,
            actor_id=self.actor_id,
            comment=comment,
        )

    async def destroyed(
        self,
        entity_type: str,
        record_id: Any,
        attributes: Mapping[str, Any],
        comment: str | None = None,
    ) -> AuditEntry | None:
        """Notify that a record with the given final attributes was destroyed."""
        return await self._recorder.record(
            entity_type,
            record_id,
            AuditAction.DESTROY,
            before_state=attributes,
            actor_id=self.actor_id,
            comment=comment,
        )
