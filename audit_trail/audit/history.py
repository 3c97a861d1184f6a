"""Attribute history and state reconstruction from audit entries.

Functions:
    history_for: Values a set of attributes took over a record's history
    state_at: Audited state of a record right after a given version

Only audited attributes can be reconstructed. Attributes outside the
permitted columns, or changed while an action was not audited, are absent
from the result.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import jsonpatch

from audit_trail.audit.diff import changes_to_jsonpatch
from audit_trail.audit.models import AuditAction, AuditEntry


@dataclass(frozen=True)
class AttributeChange:
    """New values of the requested attributes in one entry.

    Attributes:
        version: Version of the entry.
        action: Action of the entry (create or update).
        changes: Attribute name to the value it took in this entry.
        changed_at: Creation time of the entry.
    """

    version: int
    action: AuditAction
    changed_at: datetime
    changes: dict[str, Any] = field(default_factory=dict)


def history_for(entries: Iterable[AuditEntry], attributes: Iterable[str]) -> list[AttributeChange]:
    """Return the values the given attributes took, oldest first.

    Destroy entries are skipped: they snapshot the final state rather than
    change it.

    Args:
        entries: A record's audit entries, in any order.
        attributes: Attribute names to follow.

    Returns:
        One AttributeChange per create/update entry touching any attribute.
    """
    wanted = [str(name) for name in attributes]
    result: list[AttributeChange] = []

    for entry in sorted(entries, key=lambda e: e.version):
        if entry.action is AuditAction.DESTROY:
            continue
        touched: dict[str, Any] = {}
        for name in wanted:
            if name not in entry.changes:
                continue
            value = entry.changes[name]
            touched[name] = value[1] if entry.action is AuditAction.UPDATE else value
        if touched:
            result.append(
                AttributeChange(
                    version=entry.version,
                    action=entry.action,
                    changed_at=entry.created_at,
                    changes=touched,
                )
            )

    return result


def state_at(entries: Iterable[AuditEntry], version: int) -> dict[str, Any]:
    """Reconstruct the audited attribute state right after a version.

    Applies each entry's JSON Patch in version order up to and including
    `version`. A destroy entry yields the record's final snapshot.

    Args:
        entries: A record's audit entries, in any order.
        version: The version to reconstruct.

    Returns:
        Attribute map of the audited columns after that version.

    Raises:
        ValueError: If no entry has the requested version.
    """
    ordered = sorted(entries, key=lambda e: e.version)
    if not any(entry.version == version for entry in ordered):
        raise ValueError(f"No audit entry with version {version}")

    state: dict[str, Any] = {}
    for entry in ordered:
        if entry.version > version:
            break
        if entry.action is AuditAction.DESTROY:
            patch = changes_to_jsonpatch(AuditAction.CREATE, entry.changes)
        else:
            patch = changes_to_jsonpatch(entry.action, entry.changes)
        state = jsonpatch.apply_patch(state, patch)

    return state


__all__ = ["AttributeChange", "history_for", "state_at"]
