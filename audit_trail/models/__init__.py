from audit_trail.models.audit_record import AuditRecord

__all__ = [
    "AuditRecord",
]
