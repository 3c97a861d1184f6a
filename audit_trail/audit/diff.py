"""Audit change computation.

This module turns before/after attribute maps into audit payloads:
- for_create: Snapshot of the new state restricted to permitted columns
- for_destroy: Snapshot of the final state restricted to permitted columns
- for_update: (old, new) pairs of permitted columns whose value changed
- compute_changes: Dispatch by action, returning None for a no-op update
- changes_to_jsonpatch: Express an entry's changes as RFC 6902 operations

All functions are pure; none of them performs I/O.
"""

import copy
from collections.abc import Iterable, Mapping
from typing import Any

import jsonpatch

from audit_trail.audit.models import AuditAction


def _snapshot(state: Mapping[str, Any], permitted: Iterable[str]) -> dict[str, Any]:
    allowed = set(permitted)
    return {key: copy.deepcopy(value) for key, value in state.items() if key in allowed}


def for_create(after_state: Mapping[str, Any], permitted: Iterable[str]) -> dict[str, Any]:
    """Compute the payload of a create entry.

    Args:
        after_state: Attribute map of the newly created record.
        permitted: Attribute names eligible for auditing.

    Returns:
        Permitted attributes present in after_state with their values.
        Always a dict, possibly empty.
    """
    return _snapshot(after_state, permitted)


def for_destroy(before_state: Mapping[str, Any], permitted: Iterable[str]) -> dict[str, Any]:
    """Compute the payload of a destroy entry (final state snapshot)."""
    return _snapshot(before_state, permitted)


def for_update(
    before_state: Mapping[str, Any],
    after_state: Mapping[str, Any],
    permitted: Iterable[str],
) -> dict[str, tuple[Any, Any]]:
    """Compute the payload of an update entry.

    Values are compared with ==, so equal numbers, strings and structures
    count as unchanged even when they are distinct objects. An attribute
    missing from one side compares as None.

    Args:
        before_state: Attribute map before the mutation.
        after_state: Attribute map after the mutation.
        permitted: Attribute names eligible for auditing.

    Returns:
        {attribute: (old, new)} for each changed permitted attribute.
        An empty dict means there is nothing to audit.
    """
    allowed = set(permitted)
    keys = [key for key in after_state if key in allowed]
    keys += [key for key in before_state if key in allowed and key not in after_state]

    changes: dict[str, tuple[Any, Any]] = {}
    for key in keys:
        old = before_state.get(key)
        new = after_state.get(key)
        if old != new:
            changes[key] = (copy.deepcopy(old), copy.deepcopy(new))
    return changes


def compute_changes(
    action: AuditAction,
    before_state: Mapping[str, Any] | None,
    after_state: Mapping[str, Any] | None,
    permitted: Iterable[str],
) -> dict[str, Any] | None:
    """Compute the payload for a lifecycle action.

    Args:
        action: The audited lifecycle action.
        before_state: State before the mutation (update, destroy).
        after_state: State after the mutation (create, update).
        permitted: Attribute names eligible for auditing.

    Returns:
        The changes dict, or None when an update changed no permitted
        attribute.

    Raises:
        ValueError: If a state required by the action is missing.
    """
    if action is AuditAction.CREATE:
        if after_state is None:
            raise ValueError("create requires the after state")
        return for_create(after_state, permitted)

    if action is AuditAction.DESTROY:
        if before_state is None:
            raise ValueError("destroy requires the before state")
        return for_destroy(before_state, permitted)

    if before_state is None or after_state is None:
        raise ValueError("update requires both the before and after state")
    changes = for_update(before_state, after_state, permitted)
    if not changes:
        return None
    return changes


def _pointer(attribute: str) -> str:
    return jsonpatch.JsonPointer.from_parts([attribute]).path


def changes_to_jsonpatch(action: AuditAction, changes: Mapping[str, Any]) -> list[dict]:
    """Express an entry's changes as JSON Patch operations.

    Applying the operations to the audited state before the entry yields the
    state after it: create adds each attribute, update adds (overwrites) each
    new value, destroy removes each attribute.

    Args:
        action: The entry's action.
        changes: The entry's changes.

    Returns:
        List of RFC 6902 operation dicts.
    """
    if action is AuditAction.DESTROY:
        return [{"op": "remove", "path": _pointer(key)} for key in changes]

    if action is AuditAction.UPDATE:
        return [
            {"op": "add", "path": _pointer(key), "value": copy.deepcopy(pair[1])}
            for key, pair in changes.items()
        ]

    return [
        {"op": "add", "path": _pointer(key), "value": copy.deepcopy(value)}
        for key, value in changes.items()
    ]


__all__ = [
    "changes_to_jsonpatch",
    "compute_changes",
    "for_create",
    "for_destroy",
    "for_update",
]
