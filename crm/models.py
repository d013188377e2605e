from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from crm.config import COLUMN_HINTS, DEFAULT_SECTION, FIELD_HEADERS, NOTES_FIELD, REQUIRED_FORM_FIELDS
from crm.errors import ValidationError


_HINT_PATTERNS = {
    field_key: [re.compile(rf"(?<!\w){re.escape(hint)}(?!\w)") for hint in hints]
    for field_key, hints in COLUMN_HINTS.items()
}


def resolve_field(header: str) -> str | None:
    """Map a spreadsheet header to a named lookup using the Italian hints.

    Case-insensitive match of whole words, so "Hotel" is not a "tel" column;
    the first lookup whose hints match wins.
    """
    lowered = str(header or "").strip().lower()
    if not lowered:
        return None
    for field_key, patterns in _HINT_PATTERNS.items():
        if any(pattern.search(lowered) for pattern in patterns):
            return field_key
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass
class Record:
    """One CRM entry: an identifier, a section and free-form fields.

    Fixed fields (name, email, notes, ...) are lookups into ``data``.
    """

    id: str
    section: str = DEFAULT_SECTION
    data: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.id = _text(self.id)
        self.section = _text(self.section).strip() or DEFAULT_SECTION
        self.data = {_text(key): _text(value) for key, value in (self.data or {}).items()}

    def get(self, field_name: str) -> str:
        return self.data.get(field_name) or ""

    def lookup(self, field_key: str) -> str:
        header = FIELD_HEADERS[field_key]
        if header in self.data:
            return self.data[header]
        for key, value in self.data.items():
            if value.strip() and resolve_field(key) == field_key:
                return value
        return ""

    @property
    def name(self) -> str:
        return self.lookup("name")

    @property
    def contact(self) -> str:
        return self.lookup("contact")

    @property
    def email(self) -> str:
        return self.lookup("email")

    @property
    def phone(self) -> str:
        return self.lookup("phone")

    @property
    def address(self) -> str:
        return self.lookup("address")

    @property
    def last_contact_date(self) -> str:
        return self.lookup("last_contact_date")

    @property
    def notes(self) -> str:
        return self.lookup("notes")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "section": self.section,
            "data": dict(self.data),
        }
        for field_key in FIELD_HEADERS:
            payload[field_key] = self.lookup(field_key)
        return payload


def validate_company_form(data: dict[str, str]) -> dict[str, str]:
    cleaned = {key: _text(value).strip() for key, value in data.items()}
    missing = [name for name in REQUIRED_FORM_FIELDS if not cleaned.get(name)]
    if missing:
        raise ValidationError(f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required.")
    cleaned.setdefault(NOTES_FIELD, "")
    return cleaned
