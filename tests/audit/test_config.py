"""Tests for audit configuration and permitted columns."""

import logging

import pytest

from audit_trail.audit.errors import ConfigurationError
from audit_trail.audit.models import ALL_ACTIONS, AuditAction

SCHEMA = ["id", "user_id", "name", "settings", "position", "created_at", "updated_at"]


class TestPermittedColumns:
    """Tests for permitted_columns function."""

    def test_only_mode_restricts_to_listed_names(self, registry):
        """Only mode should permit exactly the listed attributes."""
        from audit_trail.audit.config import permitted_columns

        config = registry.configure("GeneralModel", {"only": ["name"]})

        result = permitted_columns(config, SCHEMA)

        assert result == {"name"}
        assert len(result) == 1

    def test_only_mode_ignores_names_outside_schema(self, registry):
        """Only mode should intersect with the schema."""
        from audit_trail.audit.config import permitted_columns

        config = registry.configure("GeneralModel", {"only": ["name", "nickname"]})

        result = permitted_columns(config, SCHEMA)

        assert result == {"name"}
        assert result <= {"name", "nickname"}

    def test_only_mode_keeps_default_excluded_names_when_listed(self, registry):
        """Default exclusions should not apply in only mode."""
        from audit_trail.audit.config import permitted_columns

        config = registry.configure("GeneralModel", {"only": ["updated_at"]})

        assert permitted_columns(config, SCHEMA) == {"updated_at"}

    def test_except_mode_removes_listed_names(self, registry):
        """Except mode should permit the schema minus the listed names."""
        from audit_trail.audit.config import permitted_columns

        config = registry.configure("GeneralModel", {"except": ["name"]})

        result = permitted_columns(config, SCHEMA)

        assert "name" not in result
        assert "name" in config.excluded_attributes
        assert result == {"id", "user_id", "settings", "position"}

    def test_default_configuration_excludes_bookkeeping_columns(self, registry):
        """Unconfigured types should audit everything but bookkeeping columns."""
        from audit_trail.audit.config import permitted_columns

        config = registry.get_configuration("GeneralModel")

        assert permitted_columns(config, SCHEMA) == {"id", "user_id", "name", "settings", "position"}

    def test_is_independent_of_call_order(self, registry):
        """The same configuration should always yield the same permitted set."""
        from audit_trail.audit.config import permitted_columns

        config = registry.configure("GeneralModel", {"except": ["settings"]})

        assert permitted_columns(config, SCHEMA) == permitted_columns(config, reversed(SCHEMA))


class TestAuditOptions:
    """Tests for AuditOptions validation."""

    def test_defaults_audit_all_actions(self):
        from audit_trail.audit.config import AuditOptions

        options = AuditOptions()

        assert options.only == []
        assert options.except_ == []
        assert set(options.on) == set(AuditAction)

    def test_accepts_except_alias(self):
        from audit_trail.audit.config import AuditOptions

        options = AuditOptions.model_validate({"except": ["name"]})

        assert options.except_ == ["name"]

    def test_normalises_single_names(self):
        from audit_trail.audit.config import AuditOptions

        options = AuditOptions.model_validate({"only": "name", "on": "update"})

        assert options.only == ["name"]
        assert options.on == [AuditAction.UPDATE]


class TestAuditConfigurationRegistry:
    """Tests for AuditConfigurationRegistry class."""

    def test_configure_returns_snapshot(self, registry):
        config = registry.configure("GeneralModel", {"only": ["name"], "on": ["update"]})

        assert config.entity_type == "GeneralModel"
        assert config.mode == "only"
        assert config.included_attributes == {"name"}
        assert config.audited_actions == {AuditAction.UPDATE}
        assert registry.get_configuration("GeneralModel") is config

    def test_default_configuration_for_unknown_type(self, registry):
        config = registry.get_configuration("Unknown")

        assert config.mode == "except"
        assert config.audited_actions == ALL_ACTIONS
        assert config.excluded_attributes == registry.default_excluded_attributes
        assert not registry.is_configured("Unknown")

    def test_except_list_is_merged_with_default_exclusions(self, registry):
        config = registry.configure("GeneralModel", {"except": ["name"]})

        assert config.excluded_attributes == {"name"} | registry.default_excluded_attributes

    def test_custom_default_exclusions(self):
        from audit_trail.audit.config import AuditConfigurationRegistry

        registry = AuditConfigurationRegistry(default_excluded_attributes=["id"])

        assert registry.get_configuration("GeneralModel").excluded_attributes == {"id"}

    def test_reconfigure_replaces_previous_configuration(self, registry):
        """The last configure call should win."""
        registry.configure("GeneralModel", {"only": ["name"]})
        config = registry.configure("GeneralModel", {"except": ["position"], "on": ["create"]})

        current = registry.get_configuration("GeneralModel")
        assert current is config
        assert current.included_attributes == frozenset()
        assert "position" in current.excluded_attributes
        assert current.audited_actions == {AuditAction.CREATE}

    def test_only_and_except_together_raise(self, registry):
        """Both only and except should be rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            registry.configure("GeneralModel", {"only": ["name"], "except": ["position"]})

        assert exc_info.value.entity_type == "GeneralModel"

    def test_invalid_configuration_keeps_previous(self, registry):
        """A rejected configure call should leave the prior snapshot in place."""
        previous = registry.configure("GeneralModel", {"only": ["name"]})

        with pytest.raises(ConfigurationError):
            registry.configure("GeneralModel", {"only": ["name"], "except": ["id"]})

        assert registry.get_configuration("GeneralModel") is previous

    def test_unknown_action_raises(self, registry):
        with pytest.raises(ConfigurationError):
            registry.configure("GeneralModel", {"on": ["archive"]})

    def test_unknown_option_raises(self, registry):
        with pytest.raises(ConfigurationError):
            registry.configure("GeneralModel", {"ignore": ["name"]})

    def test_schema_from_names(self, registry):
        config = registry.configure("GeneralModel", schema=SCHEMA)

        assert config.attribute_names == frozenset(SCHEMA)

    def test_schema_from_mapped_class(self, registry):
        """A SQLAlchemy mapped class should provide its column names."""
        from audit_trail.models.audit_record import AuditRecord

        config = registry.configure("AuditRecord", schema=AuditRecord)

        assert {"id", "record_type", "record_id", "version", "audited_changes"} <= config.attribute_names

    def test_schema_as_string_raises(self, registry):
        with pytest.raises(ConfigurationError):
            registry.configure("GeneralModel", schema="name")

    def test_reset_single_type(self, registry):
        registry.configure("GeneralModel", {"only": ["name"]})
        registry.configure("Other", {"only": ["title"]})

        registry.reset("GeneralModel")

        assert not registry.is_configured("GeneralModel")
        assert registry.is_configured("Other")

    def test_reset_all(self, registry):
        registry.configure("GeneralModel", {"only": ["name"]})

        registry.reset()

        assert not registry.is_configured("GeneralModel")

    def test_configure_logs_at_debug_level_only(self, registry, caplog):
        with caplog.at_level(logging.DEBUG, logger="audit_trail.audit.config"):
            registry.configure("GeneralModel", {"only": ["name"]})

        assert caplog.records
        assert all(record.levelno == logging.DEBUG for record in caplog.records)
