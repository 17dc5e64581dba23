"""Merging logic for configuration trees."""

from __future__ import annotations

from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .paths import KeyMap, iter_leaves
from .types import ProvenanceRecord, Tree


def normalize(data: Mapping[str, Any], key_map: Optional[KeyMap] = None) -> Tree:
    """Return a deep copy of ``data`` with every mapping key passed through ``key_map``.

    Args:
        data: Nested mapping to normalise.
        key_map: Key transformation; ``None`` keeps keys as-is.

    Returns:
        A new tree owning all of its nested mappings.
    """
    result: Tree = {}
    for key, value in data.items():
        name = str(key)
        if key_map is not None:
            name = key_map(name)
        if isinstance(value, Mapping):
            result[name] = normalize(value, key_map)
        else:
            result[name] = deepcopy(value)
    return result


def merge(base: Mapping[str, Any], incoming: Mapping[str, Any]) -> Tree:
    """Fold ``incoming`` into ``base`` and return the result as a new tree.

    Two sub-trees at the same key are merged recursively; in every other
    case the incoming value replaces the base value outright, so the last
    write wins at conflicting leaves. Neither argument is modified, and
    untouched branches of ``base`` are shared with the result.

    Both trees are expected to be normalised already (see :func:`normalize`).
    """
    merged: Tree = dict(base)
    for key, value in incoming.items():
        existing = merged.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[key] = merge(existing, value)
        else:
            merged[key] = value
    return merged


def merge_provenance(
    records: Mapping[str, ProvenanceRecord],
    delta: Mapping[str, Any],
    loader: str,
    delimiter: str = ".",
) -> Dict[str, ProvenanceRecord]:
    """Return provenance updated for the leaves written by ``delta``.

    Records under a branch that ``delta`` replaces with a leaf, and records
    for the old leaf a new branch replaces, are dropped.
    """
    updated: Dict[str, ProvenanceRecord] = dict(records)
    now = datetime.now(timezone.utc)
    for segments, value in iter_leaves(delta):
        if isinstance(value, Mapping):
            # empty sub-trees merge as a no-op
            continue
        dotted = delimiter.join(segments)
        for depth in range(1, len(segments)):
            updated.pop(delimiter.join(segments[:depth]), None)
        _clear_branch(updated, dotted + delimiter)
        updated[dotted] = ProvenanceRecord(key=dotted, loader=loader, timestamp_loaded=now)
    return updated


def _clear_branch(records: Dict[str, ProvenanceRecord], prefix: str) -> None:
    for key in [k for k in records if k.startswith(prefix)]:
        del records[key]
