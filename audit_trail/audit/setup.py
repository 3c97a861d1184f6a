"""Audit recorder construction.

Usage:
    from audit_trail.audit.setup import create_audit_recorder
    from audit_trail.db.database import async_session

    # Inside a request or unit of work (with a database session):
    async with async_session() as session, session.begin():
        recorder = create_audit_recorder(session, registry=registry)
        session.add(order)
        await session.flush()
        await recorder.record(
            "Order",
            order.id,
            AuditAction.CREATE,
            after_state={"id": order.id, "status": order.status},
            actor_id=current_user_id,
        )

    # Without a database (tests, embedding):
    recorder = create_audit_recorder()

The registry is passed in rather than held globally, so several recorders
can share one set of per-entity-type configurations.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from audit_trail.audit.config import AuditConfigurationRegistry
from audit_trail.audit.repository import AuditRepository
from audit_trail.audit.service import AuditTrailRecorder
from audit_trail.audit.store import InMemoryAuditStore

logger = logging.getLogger(__name__)


def create_audit_recorder(
    session: AsyncSession | None = None,
    registry: AuditConfigurationRegistry | None = None,
) -> AuditTrailRecorder:
    """Create an audit recorder.

    Args:
        session: Database session of the caller's unit of work. Without one,
            entries go to a fresh InMemoryAuditStore.
        registry: Shared configuration registry (default: a new, empty one)

    Returns:
        Configured AuditTrailRecorder instance
    """
    if session is not None:
        store = AuditRepository(session)
    else:
        store = InMemoryAuditStore()

    recorder = AuditTrailRecorder(
        store=store,
        registry=registry if registry is not None else AuditConfigurationRegistry(),
    )
    logger.debug("AuditTrailRecorder created with %s", type(store).__name__)

    return recorder
