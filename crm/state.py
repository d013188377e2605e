from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from crm.config import (
    DEFAULT_SECTION,
    LAST_CONTACT_FIELD,
    NOTES_FIELD,
    SECTION_VIEW_PREFIX,
    VIEW_ALL,
    VIEW_IMPORT,
)
from crm.errors import ValidationError
from crm.models import Record, validate_company_form
from crm.reconcile import merge, project

logger = logging.getLogger(__name__)


def section_view(section: str) -> str:
    """Tab key for a section; never equal to a built-in view key."""
    return f"{SECTION_VIEW_PREFIX}{section}"


@dataclass
class PendingUpload:
    filename: str
    workbook: dict[str, list[list[str]]]


@dataclass
class CrmState:
    """The authoritative in-memory collection plus the active tab.

    Record-level edits on an unknown id are silent no-ops.
    """

    records: list[Record] = field(default_factory=list)
    sections: list[str] = field(default_factory=list)
    active_view: str = VIEW_ALL
    pending_upload: PendingUpload | None = None

    def get(self, record_id: str) -> Record | None:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def add(self, data: dict[str, str]) -> Record:
        cleaned = validate_company_form(data)
        cleaned.pop("section", None)
        record = Record(id=uuid.uuid4().hex, section=DEFAULT_SECTION, data=cleaned)
        self.records.append(record)
        return record

    def update(self, record: Record) -> None:
        self.records = [record if existing.id == record.id else existing for existing in self.records]

    def delete(self, record_id: str) -> None:
        self.records = [record for record in self.records if record.id != record_id]

    def update_field(self, record_id: str, field_name: str, value: str) -> None:
        for record in self.records:
            if record.id == record_id:
                record.data[field_name] = value

    def update_date(self, record_id: str, date_value: str) -> None:
        self.update_field(record_id, LAST_CONTACT_FIELD, date_value)

    def update_notes(self, record_id: str, notes: str) -> None:
        self.update_field(record_id, NOTES_FIELD, notes)

    def import_complete(self, records: list[Record], group_key: str) -> None:
        self.records, self.sections = merge(self.records, records, group_key, self.sections)
        self.active_view = section_view(group_key)
        logger.info("Imported %d record(s) into section %r", len(records), group_key)

    def views(self) -> list[str]:
        return [VIEW_ALL, *(section_view(section) for section in self.sections), VIEW_IMPORT]

    def select_view(self, view: str) -> None:
        if view not in self.views():
            raise ValidationError(f"Unknown view '{view}'.")
        self.active_view = view

    @property
    def active_section(self) -> str | None:
        if self.active_view.startswith(SECTION_VIEW_PREFIX):
            return self.active_view[len(SECTION_VIEW_PREFIX):]
        return None

    def visible_records(self) -> list[Record]:
        if self.active_view == VIEW_ALL:
            return list(self.records)
        section = self.active_section
        if section is None:
            return []
        return [record for record in self.records if record.section == section]

    def columns(self) -> list[str]:
        return project(self.visible_records())

    def stash_upload(self, filename: str, workbook: dict[str, list[list[str]]]) -> None:
        self.pending_upload = PendingUpload(filename=filename, workbook=workbook)

    def clear_upload(self) -> None:
        self.pending_upload = None
