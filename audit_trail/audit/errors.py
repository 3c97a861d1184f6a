"""Audit error types."""


class AuditError(Exception):
    """Base exception for auditing errors."""
    pass


class ConfigurationError(AuditError):
    """Invalid audit configuration for an entity type.

    The previous configuration of the entity type is left in place.
    """

    def __init__(self, message: str, entity_type: str | None = None):
        super().__init__(message)
        self.entity_type = entity_type


class StorageError(AuditError):
    """Audit store failed to append or look up entries."""

    def __init__(self, message: str, record_type: str | None = None, record_id: str | None = None):
        super().__init__(message)
        self.record_type = record_type
        self.record_id = record_id
