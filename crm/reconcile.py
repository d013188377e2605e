"""Merge imported records into the collection and derive table columns."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from crm.config import BLANK_MARKERS, NOTES_FIELD
from crm.models import Record


def add_section(sections: Sequence[str], key: str) -> list[str]:
    result = list(sections)
    if key not in result:
        result.append(key)
    return result


def merge(
    existing: Sequence[Record],
    incoming: Iterable[Record],
    group_key: str,
    sections: Sequence[str] = (),
) -> tuple[list[Record], list[str]]:
    """Append ``incoming`` after ``existing`` and register ``group_key`` as a section.

    Append-only: identifiers are not deduplicated, so a re-imported sheet keeps both
    copies. Inputs are left untouched.
    """
    records = list(existing)
    records.extend(incoming)
    return records, add_section(sections, group_key)


def is_blank(value: str | None) -> bool:
    if value is None:
        return True
    if not value.strip():
        return True
    return value.lower() in BLANK_MARKERS


def project(view: Sequence[Record]) -> list[str]:
    """Column headers to render for ``view``.

    Field names in order of first appearance, without Notes (rendered on its own)
    and without columns that are blank in every record.
    """
    names: dict[str, None] = {}
    for record in view:
        for key in record.data:
            names.setdefault(key, None)
    names.pop(NOTES_FIELD, None)
    return [name for name in names if any(not is_blank(record.data.get(name)) for record in view)]
