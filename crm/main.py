import json
import logging
from datetime import date
from pathlib import Path

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from crm.config import (
    DEFAULT_SECTION,
    FIELD_HEADERS,
    NOTES_FIELD,
    REQUIRED_FORM_FIELDS,
    VIEW_ALL,
    VIEW_IMPORT,
    settings,
)
from crm.errors import CrmError, FormatError, NotFoundError, ValidationError
from crm.google_sheets import fetch_range, section_from_range
from crm.models import Record
from crm.sheet_import import format_sheet_data, import_workbook_sheets, map_rows, read_workbook
from crm.state import CrmState, section_view

BASE_DIR = Path(__file__).resolve().parent

app = FastAPI(title="Nexa CRM")
app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")
templates = Jinja2Templates(directory=BASE_DIR / "templates")
logger = logging.getLogger(__name__)

app.state.crm = CrmState()

FORM_FIELDS = [*REQUIRED_FORM_FIELDS, NOTES_FIELD]


class SheetRangeRequest(BaseModel):
    spreadsheetId: str | None = None
    range: str | None = None


def get_state(request: Request) -> CrmState:
    return request.app.state.crm


def parse_optional_date(value: str | None, field_name: str, required: bool = False) -> date | None:
    if value is None:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None

    cleaned = value.strip()
    if not cleaned:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None

    try:
        return date.fromisoformat(cleaned)
    except ValueError as exc:
        raise ValidationError(f"Invalid {field_name}. Use YYYY-MM-DD.") from exc


def parse_sheet_selection(raw: str | None) -> list[str] | None:
    if raw is None or not raw.strip():
        return None
    try:
        selection = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise FormatError("Invalid sheets parameter format") from exc
    if not isinstance(selection, list) or not all(isinstance(name, str) for name in selection):
        raise FormatError("Invalid sheets parameter format")
    return selection


def render_index(
    request: Request,
    state: CrmState,
    *,
    status_code: int = 200,
    form_error: str = "",
    form_values: dict[str, str] | None = None,
    adding: bool = False,
    editing: Record | None = None,
    import_error: str = "",
    import_result: dict | None = None,
):
    pending = state.pending_upload
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "active_view": state.active_view,
            "active_section": state.active_section,
            "section_tabs": [(section_view(section), section) for section in state.sections],
            "sections": state.sections,
            "view_all": VIEW_ALL,
            "view_import": VIEW_IMPORT,
            "records": state.visible_records(),
            "columns": state.columns(),
            "form_fields": FORM_FIELDS,
            "required_fields": REQUIRED_FORM_FIELDS,
            "default_section": DEFAULT_SECTION,
            "form_error": form_error,
            "form_values": form_values or {},
            "adding": adding,
            "editing": editing,
            "import_error": import_error,
            "import_result": import_result,
            "pending_filename": pending.filename if pending else "",
            "pending_sheets": {name: len(rows) - 1 for name, rows in pending.workbook.items()} if pending else {},
        },
        status_code=status_code,
    )


def render_import_error(request: Request, state: CrmState, exc: CrmError):
    state.active_view = VIEW_IMPORT
    return render_index(request, state, status_code=exc.status_code, import_error=str(exc.detail))


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/")
async def index(request: Request, state: CrmState = Depends(get_state)):
    return render_index(request, state)


@app.post("/view")
async def select_view(view: str = Form(...), state: CrmState = Depends(get_state)):
    state.select_view(view)
    return RedirectResponse(url="/", status_code=303)


@app.get("/companies/new")
async def new_company_form(request: Request, state: CrmState = Depends(get_state)):
    return render_index(request, state, adding=True)


@app.post("/companies")
async def create_company(request: Request, state: CrmState = Depends(get_state)):
    form = await request.form()
    form_values = {name: str(form.get(name, "")).strip() for name in FORM_FIELDS}
    try:
        state.add(form_values)
    except ValidationError as exc:
        return render_index(
            request,
            state,
            status_code=400,
            form_error=str(exc.detail),
            form_values=form_values,
            adding=True,
        )
    return RedirectResponse(url="/", status_code=303)


@app.get("/companies/{record_id:path}/edit")
async def edit_company_form(record_id: str, request: Request, state: CrmState = Depends(get_state)):
    record = state.get(record_id)
    if record is None:
        raise NotFoundError("Company not found")
    return render_index(request, state, editing=record, form_values=dict(record.data))


@app.post("/companies/{record_id:path}/delete")
async def delete_company(record_id: str, state: CrmState = Depends(get_state)):
    state.delete(record_id)
    return RedirectResponse(url="/", status_code=303)


@app.post("/companies/{record_id:path}/field")
async def update_company_field(
    record_id: str,
    field: str = Form(...),
    value: str = Form(""),
    state: CrmState = Depends(get_state),
):
    if not field.strip():
        raise ValidationError("field is required")
    state.update_field(record_id, field.strip(), value)
    return RedirectResponse(url="/", status_code=303)


@app.post("/companies/{record_id:path}/date")
async def update_company_date(
    record_id: str,
    last_contact_date: str = Form(""),
    state: CrmState = Depends(get_state),
):
    parsed = parse_optional_date(last_contact_date, "last_contact_date")
    if parsed is not None:
        state.update_date(record_id, parsed.isoformat())
    return RedirectResponse(url="/", status_code=303)


@app.post("/companies/{record_id:path}/notes")
async def update_company_notes(
    record_id: str,
    notes: str = Form(""),
    state: CrmState = Depends(get_state),
):
    state.update_notes(record_id, notes)
    return RedirectResponse(url="/", status_code=303)


# Declared after the suffixed routes: record ids may contain "/" (sheet titles).
@app.post("/companies/{record_id:path}")
async def update_company(record_id: str, request: Request, state: CrmState = Depends(get_state)):
    existing = state.get(record_id)
    if existing is None:
        return RedirectResponse(url="/", status_code=303)

    form = await request.form()
    data = {key: str(value) for key, value in form.multi_items() if key != "section"}
    data.setdefault(NOTES_FIELD, "")
    section = str(form.get("section", "")).strip() or existing.section
    state.update(Record(id=record_id, section=section, data=data))
    return RedirectResponse(url="/", status_code=303)


@app.post("/import/excel")
async def import_excel(
    request: Request,
    workbook_file: UploadFile | None = File(None),
    import_mode: str = Form("preview"),
    sheets: list[str] = Form([]),
    state: CrmState = Depends(get_state),
):
    mode = import_mode.strip().lower() or "preview"
    try:
        if mode not in {"preview", "apply"}:
            raise ValidationError("Invalid import mode. Use preview or apply.")

        uploaded = workbook_file is not None and bool(workbook_file.filename)
        if uploaded:
            payload = await workbook_file.read()
            state.stash_upload(workbook_file.filename, read_workbook(payload, workbook_file.filename))

        pending = state.pending_upload
        if mode == "preview":
            if pending is None:
                raise ValidationError("Please select a file to import")
            state.active_view = VIEW_IMPORT
            return render_index(request, state)

        selected = list(sheets)
        if not selected and uploaded and pending is not None:
            selected = list(pending.workbook)
        if pending is None or not selected:
            raise ValidationError("Please select a file and at least one sheet to import")

        result = import_workbook_sheets(state, pending.workbook, selected)
        state.clear_upload()
    except CrmError as exc:
        return render_import_error(request, state, exc)

    if not result["sheets_imported"]:
        state.active_view = VIEW_IMPORT
        return render_index(request, state, import_result=result)
    return RedirectResponse(url="/", status_code=303)


@app.post("/import/google")
async def import_google_sheet(
    request: Request,
    spreadsheet_id: str = Form(""),
    range_name: str = Form("", alias="range"),
    state: CrmState = Depends(get_state),
):
    try:
        values = await run_in_threadpool(fetch_range, settings, spreadsheet_id, range_name)
        section = section_from_range(range_name.strip())
        records = map_rows(values, section)
        if not records:
            raise NotFoundError("No data rows found in the specified range")
    except CrmError as exc:
        return render_import_error(request, state, exc)

    state.import_complete(records, section)
    return RedirectResponse(url="/", status_code=303)


@app.post("/api/import-excel")
async def api_import_excel(
    file: UploadFile | None = File(None),
    sheets: str | None = Form(None),
):
    if file is None or not file.filename:
        raise ValidationError("No file provided")
    sheet_names = parse_sheet_selection(sheets)

    payload = await file.read()
    data = read_workbook(payload, file.filename, sheet_names)
    return {
        "success": True,
        "data": data,
        "message": "Excel file processed successfully",
    }


@app.post("/api/import-sheet")
async def api_import_sheet(body: SheetRangeRequest):
    values = await run_in_threadpool(fetch_range, settings, body.spreadsheetId, body.range)
    return {"data": format_sheet_data(values)}


@app.get("/api/companies")
async def list_companies(state: CrmState = Depends(get_state)):
    return {
        "items": [record.to_dict() for record in state.records],
        "sections": list(state.sections),
        "active_view": state.active_view,
        "active_section": state.active_section,
        "columns": state.columns(),
        "fields": list(FIELD_HEADERS),
    }


def run():
    import uvicorn

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.app_host, port=settings.app_port)


if __name__ == "__main__":
    run()
