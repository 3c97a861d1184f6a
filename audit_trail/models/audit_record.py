"""AuditRecord model: the persisted form of an audit entry."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from audit_trail.db.database import Base


class AuditRecord(Base):
    """One row per audited lifecycle event.

    The audited record is referenced by type and id only, so rows outlive
    the record they describe. Rows are append-only.
    """

    __tablename__ = "audits"
    __table_args__ = (
        UniqueConstraint("record_type", "record_id", "version", name="uq_audits_record_version"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    entry_id: Mapped[str] = mapped_column(String(36), unique=True)

    # Weak reference to the audited record
    record_type: Mapped[str] = mapped_column(String(100), index=True)
    record_id: Mapped[str] = mapped_column(String(100), index=True)

    action: Mapped[str] = mapped_column(String(20))
    version: Mapped[int] = mapped_column(Integer)
    audited_changes: Mapped[dict[str, Any]] = mapped_column(JSON)

    actor_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
