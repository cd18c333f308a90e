"""Baseline diffing.

Membership is decided by event id alone. Order of the fetched events is
preserved and duplicate ids inside the fetched set are not collapsed; the
baseline only contributes its set of ids.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any


def baseline_ids(baseline: Iterable[Any]) -> set[Any]:
    """Collect the identities present in a baseline snapshot."""
    return {
        record.get("id")
        for record in baseline
        if isinstance(record, Mapping) and record.get("id") is not None
    }


def compute_new_items(
    current: Sequence[Any],
    baseline: Iterable[Any],
) -> list[Any]:
    """Return the records of ``current`` whose id is absent from ``baseline``.

    Records in ``current`` that are not mappings, or carry no id, cannot be
    matched against the baseline and are therefore reported as new.
    """
    known = baseline_ids(baseline)
    return [
        record
        for record in current
        if not (isinstance(record, Mapping) and record.get("id") in known)
    ]


def dedupe_by_id(records: Iterable[Any]) -> list[Any]:
    """Keep the first occurrence of every id, preserving order.

    Records without an id are kept unchanged.
    """
    seen: set[Any] = set()
    unique: list[Any] = []
    for record in records:
        record_id = record.get("id") if isinstance(record, Mapping) else None
        if record_id is not None:
            if record_id in seen:
                continue
            seen.add(record_id)
        unique.append(record)
    return unique
