"""Change-auditing engine.

This module records an immutable, versioned history of record lifecycle
events with:
- Per-entity-type configuration of audited attributes and actions
- Snapshot payloads for create/destroy and (old, new) pairs for update
- Suppression of updates that change no audited attribute
- Per-record version numbers starting at 1
- Optional actor and comment on every entry

Usage:
    from audit_trail.audit import (
        AuditAction,
        AuditConfigurationRegistry,
        AuditContext,
        create_audit_recorder,
    )

    registry = AuditConfigurationRegistry()
    registry.configure("GeneralModel", {"only": ["name"]})
    recorder = create_audit_recorder(session, registry=registry)

    entry = await recorder.record(
        "GeneralModel",
        general_model.id,
        AuditAction.UPDATE,
        before_state={"name": "A", "position": 1},
        after_state={"name": "B", "position": 1},
        actor_id="user-123",
        comment="Some comment",
    )
"""

# Config - per-entity-type configuration and permitted columns
from audit_trail.audit.config import (
    DEFAULT_EXCLUDED_ATTRIBUTES,
    AuditConfiguration,
    AuditConfigurationRegistry,
    AuditOptions,
    permitted_columns,
)

# Diff - change computation
from audit_trail.audit.diff import (
    changes_to_jsonpatch,
    compute_changes,
    for_create,
    for_destroy,
    for_update,
)

# Errors
from audit_trail.audit.errors import AuditError, ConfigurationError, StorageError

# Factory - lifecycle notification interface
from audit_trail.audit.factory import ActorResolver, AuditContext

# History - attribute history and state reconstruction
from audit_trail.audit.history import AttributeChange, history_for, state_at

# Models - core data structures and enums
from audit_trail.audit.models import ALL_ACTIONS, AuditAction, AuditEntry

# Repository - database operations
from audit_trail.audit.repository import AuditQueryFilters, AuditRepository

# Service - main recorder
from audit_trail.audit.service import AuditTrailRecorder

# Setup - construction
from audit_trail.audit.setup import create_audit_recorder

# Store - persistence boundary
from audit_trail.audit.store import AuditStore, InMemoryAuditStore

__all__ = [
    # Models
    "ALL_ACTIONS",
    "AuditAction",
    "AuditEntry",
    # Errors
    "AuditError",
    "ConfigurationError",
    "StorageError",
    # Config
    "DEFAULT_EXCLUDED_ATTRIBUTES",
    "AuditConfiguration",
    "AuditConfigurationRegistry",
    "AuditOptions",
    "permitted_columns",
    # Diff
    "changes_to_jsonpatch",
    "compute_changes",
    "for_create",
    "for_destroy",
    "for_update",
    # History
    "AttributeChange",
    "history_for",
    "state_at",
    # Store
    "AuditStore",
    "InMemoryAuditStore",
    # Repository
    "AuditQueryFilters",
    "AuditRepository",
    # Service
    "AuditTrailRecorder",
    # Factory
    "ActorResolver",
    "AuditContext",
    # Setup
    "create_audit_recorder",
]
