"""Tests for audit models."""

from datetime import datetime, timezone
from uuid import UUID

import pytest
from pydantic import ValidationError

from audit_trail.audit.models import ALL_ACTIONS, AuditAction, AuditEntry


def create_test_entry(**overrides) -> AuditEntry:
    """Helper to create test audit entries."""
    fields = {
        "record_type": "GeneralModel",
        "record_id": "1",
        "action": AuditAction.CREATE,
        "version": 1,
        "changes": {"name": "A"},
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return AuditEntry(**fields)


class TestAuditAction:
    """Tests for AuditAction enum."""

    def test_values(self):
        assert AuditAction.CREATE.value == "create"
        assert AuditAction.UPDATE.value == "update"
        assert AuditAction.DESTROY.value == "destroy"

    def test_all_actions(self):
        assert ALL_ACTIONS == {AuditAction.CREATE, AuditAction.UPDATE, AuditAction.DESTROY}


class TestAuditEntry:
    """Tests for AuditEntry model."""

    def test_generates_id(self):
        entry = create_test_entry()

        assert isinstance(entry.id, UUID)
        assert entry.id != create_test_entry().id

    def test_optional_fields_default_to_none(self):
        entry = create_test_entry()

        assert entry.actor_id is None
        assert entry.comment is None

    def test_record_id_is_normalised_to_string(self):
        entry = create_test_entry(record_id=42, actor_id=7)

        assert entry.record_id == "42"
        assert entry.actor_id == "7"

    def test_is_immutable(self):
        entry = create_test_entry()

        with pytest.raises(ValidationError):
            entry.version = 2

    def test_version_must_be_positive(self):
        with pytest.raises(ValidationError):
            create_test_entry(version=0)

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            create_test_entry(user="someone")

    def test_update_changes_keep_pairs(self):
        entry = create_test_entry(action=AuditAction.UPDATE, version=2, changes={"name": ("A", "B")})

        assert entry.changes["name"] == ("A", "B")
        assert entry.changed_attributes() == ["name"]
