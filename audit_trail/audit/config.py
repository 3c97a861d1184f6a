"""Per-entity-type audit configuration and permitted column rules.

This module defines which attributes of an entity type are audited and which
lifecycle actions produce audit entries:
- AuditOptions validates the options given to configure()
- AuditConfiguration is the immutable snapshot used by a single record call
- AuditConfigurationRegistry holds the current snapshot per entity type
- permitted_columns computes the auditable subset of an attribute schema

Only mode: a non-empty `only` list restricts auditing to exactly those names.
Except mode: otherwise every attribute is audited except the `except` list
             plus the deployment's default exclusion set.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from sqlalchemy import inspect as sa_inspect

from audit_trail.audit.errors import ConfigurationError
from audit_trail.audit.models import ALL_ACTIONS, AuditAction
from audit_trail.config import settings

logger = logging.getLogger(__name__)

# =============================================================================
# DEFAULT EXCLUSIONS
# =============================================================================

DEFAULT_EXCLUDED_ATTRIBUTES: frozenset[str] = frozenset(settings.default_excluded_attributes)
"""Attributes left out of every except-mode configuration.

Bookkeeping timestamps and optimistic-lock counters change on nearly every
write and carry no business meaning. Primary keys are not excluded, so a
create with no options snapshots the record id. Override per deployment with
AUDIT_DEFAULT_EXCLUDED_ATTRIBUTES.
"""


# =============================================================================
# OPTIONS AND SNAPSHOTS
# =============================================================================


def _as_name_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(name) for name in value]


class AuditOptions(BaseModel):
    """Options accepted by AuditConfigurationRegistry.configure().

    Attributes:
        only: Audit exactly these attributes.
        except_: Audit everything but these attributes (key "except").
        on: Lifecycle actions that produce entries (default: all three).
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    only: list[str] = Field(default_factory=list)
    except_: list[str] = Field(default_factory=list, alias="except")
    on: list[AuditAction] = Field(default_factory=lambda: list(AuditAction))

    @field_validator("only", "except_", mode="before")
    @classmethod
    def _normalise_names(cls, value: Any) -> list[str]:
        return _as_name_list(value)

    @field_validator("on", mode="before")
    @classmethod
    def _normalise_actions(cls, value: Any) -> Any:
        if value is None:
            return list(AuditAction)
        if isinstance(value, str):
            return [value]
        return value

    @model_validator(mode="after")
    def _check_exclusive_modes(self) -> AuditOptions:
        if self.only and self.except_:
            raise ValueError("'only' and 'except' are mutually exclusive")
        return self


@dataclass(frozen=True)
class AuditConfiguration:
    """Immutable audit settings of one entity type.

    A record call reads exactly one snapshot, so a concurrent reconfiguration
    is observed entirely or not at all.
    """

    entity_type: str
    included_attributes: frozenset[str] = frozenset()
    excluded_attributes: frozenset[str] = frozenset()
    audited_actions: frozenset[AuditAction] = ALL_ACTIONS
    # Declared attribute schema; None means "use the keys of the states"
    attribute_names: frozenset[str] | None = None

    @property
    def mode(self) -> str:
        return "only" if self.included_attributes else "except"

    def audits(self, action: AuditAction) -> bool:
        return action in self.audited_actions


def permitted_columns(
    config: AuditConfiguration,
    all_attribute_names: Iterable[str],
) -> frozenset[str]:
    """Compute the attribute names eligible for auditing.

    Depends only on the configuration and the attribute names, never on
    record values, so two records of one type get the same permitted set.

    Args:
        config: Configuration snapshot of the entity type.
        all_attribute_names: Full attribute schema of the entity type.

    Returns:
        all ∩ included in only mode, all − excluded in except mode.
    """
    names = frozenset(all_attribute_names)
    if config.included_attributes:
        return names & config.included_attributes
    return names - config.excluded_attributes


# =============================================================================
# REGISTRY
# =============================================================================


class AuditConfigurationRegistry:
    """Holds the current AuditConfiguration of each entity type.

    Reconfiguring an entity type replaces its snapshot atomically; the last
    call wins. Unconfigured entity types get the default configuration:
    except mode with the default exclusion set, all actions audited.

    Args:
        default_excluded_attributes: Exclusion set merged into every except-mode
            configuration (default: DEFAULT_EXCLUDED_ATTRIBUTES).

    Example:
        >>> registry = AuditConfigurationRegistry()
        >>> registry.configure("GeneralModel", {"only": ["name"], "on": ["update"]})
        >>> registry.get_configuration("GeneralModel").mode
        'only'
    """

    def __init__(self, default_excluded_attributes: Iterable[str] | None = None) -> None:
        if default_excluded_attributes is None:
            self._default_excluded = DEFAULT_EXCLUDED_ATTRIBUTES
        else:
            self._default_excluded = frozenset(default_excluded_attributes)
        self._configurations: dict[str, AuditConfiguration] = {}
        self._lock = threading.Lock()

    @property
    def default_excluded_attributes(self) -> frozenset[str]:
        return self._default_excluded

    def configure(
        self,
        entity_type: str,
        options: Mapping[str, Any] | AuditOptions | None = None,
        *,
        schema: Any = None,
    ) -> AuditConfiguration:
        """Set the audit configuration of an entity type.

        Args:
            entity_type: Name of the audited entity type.
            options: Mapping with optional keys "only", "except" and "on",
                or an AuditOptions instance.
            schema: Attribute names of the entity type, or a SQLAlchemy mapped
                class whose column attributes are used.

        Returns:
            The new configuration snapshot.

        Raises:
            ConfigurationError: If the options are invalid. The previous
                configuration is kept.
        """
        if isinstance(options, AuditOptions):
            parsed = options
        else:
            try:
                parsed = AuditOptions.model_validate(dict(options or {}))
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Invalid audit options for '{entity_type}': {exc}",
                    entity_type=entity_type,
                ) from exc

        included = frozenset(parsed.only)
        excluded = frozenset() if included else frozenset(parsed.except_) | self._default_excluded

        config = AuditConfiguration(
            entity_type=entity_type,
            included_attributes=included,
            excluded_attributes=excluded,
            audited_actions=frozenset(parsed.on),
            attribute_names=self._schema_names(entity_type, schema),
        )

        with self._lock:
            self._configurations[entity_type] = config

        logger.debug(
            "Configured auditing: entity_type=%s, mode=%s, actions=%s",
            entity_type,
            config.mode,
            sorted(action.value for action in config.audited_actions),
        )
        return config

    def get_configuration(self, entity_type: str) -> AuditConfiguration:
        """Return the current configuration snapshot of an entity type."""
        with self._lock:
            config = self._configurations.get(entity_type)
        if config is None:
            return AuditConfiguration(
                entity_type=entity_type,
                excluded_attributes=self._default_excluded,
            )
        return config

    def is_configured(self, entity_type: str) -> bool:
        with self._lock:
            return entity_type in self._configurations

    def reset(self, entity_type: str | None = None) -> None:
        """Drop the configuration of one entity type, or of all of them."""
        with self._lock:
            if entity_type is None:
                self._configurations.clear()
            else:
                self._configurations.pop(entity_type, None)

    def _schema_names(self, entity_type: str, schema: Any) -> frozenset[str] | None:
        if schema is None:
            return None
        if isinstance(schema, str):
            raise ConfigurationError(
                f"Schema for '{entity_type}' must be a collection of names, not a string",
                entity_type=entity_type,
            )
        mapper = sa_inspect(schema, raiseerr=False) if isinstance(schema, type) else None
        if mapper is not None and hasattr(mapper, "column_attrs"):
            return frozenset(attr.key for attr in mapper.column_attrs)
        return frozenset(str(name) for name in schema)


__all__ = [
    "DEFAULT_EXCLUDED_ATTRIBUTES",
    "AuditConfiguration",
    "AuditConfigurationRegistry",
    "AuditOptions",
    "permitted_columns",
]
