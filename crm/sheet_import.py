from __future__ import annotations

import logging
import math
from datetime import date, datetime, time
from io import BytesIO
from typing import Any, Iterable

import pandas as pd
from openpyxl import load_workbook

from crm.config import LEGACY_WORKBOOK_EXTENSIONS, NOTES_FIELD, WORKBOOK_EXTENSIONS
from crm.errors import FormatError
from crm.models import Record
from crm.state import CrmState

logger = logging.getLogger(__name__)


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    text_value = str(value).replace("\xa0", " ").strip()
    return text_value


def _cell_text(value: Any) -> str:
    """Display text for a cell. Text cells are returned untouched."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ", timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def _is_row_populated(row: tuple[Any, ...] | list[Any]) -> bool:
    return any(_clean_text(v) for v in row)


def _sheet_rows(raw_rows: Iterable[tuple[Any, ...]]) -> list[list[str]]:
    rows = [[_cell_text(v) for v in row] for row in raw_rows]
    rows = [row for row in rows if _is_row_populated(row)]
    if not rows:
        return []

    width = 0
    for row in rows:
        for idx, cell in enumerate(row, start=1):
            if _clean_text(cell):
                width = max(width, idx)
    return [(row + [""] * (width - len(row)))[:width] for row in rows]


def _read_legacy_workbook(content: bytes, filename: str, sheet_names: list[str] | None) -> dict[str, list[list[str]]]:
    """Read an .xls workbook through pandas' xlrd engine."""
    try:
        frames = pd.read_excel(
            BytesIO(content),
            sheet_name=None,
            header=None,
            dtype=object,
            na_filter=False,
            engine="xlrd",
        )
    except Exception as exc:
        logger.exception("Could not read workbook %s", filename)
        raise FormatError("Failed to process Excel file", status_code=500) from exc

    wanted = list(frames) if sheet_names is None else [n for n in sheet_names if n in frames]
    result: dict[str, list[list[str]]] = {}
    for name in wanted:
        rows = _sheet_rows(frames[name].itertuples(index=False, name=None))
        if rows:
            result[name] = rows
    return result


def read_workbook(
    content: bytes,
    filename: str,
    sheet_names: list[str] | None = None,
) -> dict[str, list[list[str]]]:
    """Parse an uploaded workbook into ``{sheet name: rows of display text}``.

    Sheets with no populated rows are left out. ``sheet_names`` restricts and orders
    the result; names missing from the workbook are ignored.
    """
    lowered = filename.lower()
    if not lowered.endswith(WORKBOOK_EXTENSIONS + LEGACY_WORKBOOK_EXTENSIONS):
        raise FormatError("Upload an .xlsx, .xlsm or .xls workbook")
    if not content:
        raise FormatError("Uploaded workbook is empty")
    if lowered.endswith(LEGACY_WORKBOOK_EXTENSIONS):
        return _read_legacy_workbook(content, filename, sheet_names)

    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:
        logger.exception("Could not read workbook %s", filename)
        raise FormatError("Failed to process Excel file", status_code=500) from exc

    try:
        wanted = workbook.sheetnames if sheet_names is None else [n for n in sheet_names if n in workbook.sheetnames]
        result: dict[str, list[list[str]]] = {}
        for name in wanted:
            worksheet = workbook[name]
            # Chartsheets have no cells.
            if not hasattr(worksheet, "iter_rows"):
                continue
            rows = _sheet_rows(worksheet.iter_rows(values_only=True))
            if rows:
                result[name] = rows
    except (ValueError, TypeError, KeyError) as exc:
        logger.exception("Could not read sheets of workbook %s", filename)
        raise FormatError("Failed to process Excel file", status_code=500) from exc
    finally:
        workbook.close()
    return result


def _validate_rows(rows: Any) -> None:
    if not isinstance(rows, (list, tuple)):
        raise FormatError("Sheet data must be a list of rows")
    for row_num, row in enumerate(rows, start=1):
        if not isinstance(row, (list, tuple)):
            label = "Header row" if row_num == 1 else f"Row {row_num}"
            raise FormatError(f"{label} is not a list of cells")


def _headers(header_row: list[Any] | tuple[Any, ...]) -> list[str]:
    # Header text is kept verbatim; only blank cells get a positional name.
    headers = []
    for idx, header in enumerate(header_row, start=1):
        text = _cell_text(header)
        headers.append(text if _clean_text(text) else f"Column {idx}")
    return headers


def map_rows(rows: Any, sheet_name: str) -> list[Record]:
    """Turn a 2-D sheet (first row = headers) into records of ``sheet_name``."""
    _validate_rows(rows)
    if len(rows) < 2:
        return []

    headers = _headers(rows[0])
    records: list[Record] = []
    for idx, row in enumerate(rows[1:]):
        data: dict[str, str] = {}
        for col, header in enumerate(headers):
            data[header] = _cell_text(row[col]) if col < len(row) else ""
        data.setdefault(NOTES_FIELD, "")
        records.append(Record(id=f"{sheet_name}-{idx}", section=sheet_name, data=data))
    return records


def format_sheet_data(rows: Any) -> list[dict[str, str]]:
    """Header-keyed dicts for a fetched range, without record identity."""
    _validate_rows(rows or [])
    if not rows:
        return []
    headers = [_cell_text(header) for header in rows[0]]
    return [
        {header: (_cell_text(row[col]) if col < len(row) else "") for col, header in enumerate(headers)}
        for row in rows[1:]
    ]


def _add_warning(summary: dict[str, Any], message: str) -> None:
    summary.setdefault("warnings", []).append(message)
    summary["warning_count"] = int(summary.get("warning_count", 0)) + 1


def import_workbook_sheets(
    state: CrmState,
    workbook: dict[str, Any],
    selected: list[str],
) -> dict[str, Any]:
    """Import each selected sheet independently; a bad sheet never blocks the rest."""
    summary: dict[str, Any] = {
        "sheets_imported": [],
        "sheets_skipped": [],
        "records_imported": 0,
        "warnings": [],
        "warning_count": 0,
    }

    for sheet_name in selected:
        if sheet_name not in workbook:
            summary["sheets_skipped"].append(sheet_name)
            _add_warning(summary, f"Sheet '{sheet_name}' not found in workbook; skipped.")
            continue
        try:
            records = map_rows(workbook[sheet_name], sheet_name)
        except FormatError as exc:
            logger.warning("Skipping sheet %r: %s", sheet_name, exc.detail)
            summary["sheets_skipped"].append(sheet_name)
            _add_warning(summary, f"Sheet '{sheet_name}' skipped: {exc.detail}")
            continue
        if not records:
            summary["sheets_skipped"].append(sheet_name)
            continue

        state.import_complete(records, sheet_name)
        summary["sheets_imported"].append(sheet_name)
        summary["records_imported"] += len(records)

    return summary
