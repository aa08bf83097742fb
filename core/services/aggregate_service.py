"""Merging of per-image metadata for multi-selection editing.

The aggregate keeps three states per field: a concrete value, absent (None),
or `DIVERGENT` when contributing images disagree.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from loguru import logger

from core.models import ATTRIBUTE_KEYS, DIVERGENT, AggregateMetadataSet, MetadataSet


def values_equal(lhs: Any, rhs: Any) -> bool:
    """Compare two metadata values; dates compare by instant."""
    if lhs is None or rhs is None:
        return lhs is None and rhs is None
    if isinstance(lhs, datetime) and isinstance(rhs, datetime):
        # Aware values compare by instant; naive never equals aware
        return lhs == rhs
    if isinstance(lhs, bool) or isinstance(rhs, bool):
        return type(lhs) is type(rhs) and lhs == rhs
    return lhs == rhs


def aggregate(sets: Sequence[Mapping[str, Any]]) -> AggregateMetadataSet:
    """Collapse metadata sets into one view, marking disagreements.

    Keys are taken from the first set; keys missing from other sets count
    as absent. A single set is returned as-is.
    """
    if not sets:
        return {}
    if len(sets) == 1:
        return sets[0]  # type: ignore[return-value]

    first = sets[0]
    result: AggregateMetadataSet = {}
    for key in first:
        value = first[key]
        if all(values_equal(value, other.get(key)) for other in sets[1:]):
            result[key] = value
        else:
            result[key] = DIVERGENT
    return result


def merge_edits(metadata: Mapping[str, Any] | None, edits: Mapping[str, Any]) -> MetadataSet:
    """Overlay `edits` on `metadata`, last write wins per field.

    `DIVERGENT` edit values leave the existing field untouched, and keys
    outside the attribute vocabulary are ignored.
    """
    merged: MetadataSet = dict(metadata or {})
    for key, value in edits.items():
        if value is DIVERGENT:
            continue
        if key not in ATTRIBUTE_KEYS:
            logger.warning("Ignoring edit for unknown attribute: {}", key)
            continue
        merged[key] = value
    return merged
