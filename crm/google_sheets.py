"""Read a cell range from Google Sheets with a service account."""

from __future__ import annotations

import logging
from typing import Any

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from crm.config import GOOGLE_SHEET_SECTION, GOOGLE_SHEETS_SCOPES, GOOGLE_TOKEN_URI, Settings
from crm.errors import ConfigurationError, NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)


def load_credentials(settings: Settings) -> tuple[str, str]:
    client_email = (settings.google_sheets_client_email or "").strip()
    private_key = settings.google_sheets_private_key or ""
    if not client_email or not private_key.strip():
        raise ConfigurationError("Google Sheets credentials not configured")
    return client_email, private_key.replace("\\n", "\n")


def get_sheet_values(
    spreadsheet_id: str,
    range_name: str,
    *,
    client_email: str,
    private_key: str,
) -> list[list[Any]] | None:
    try:
        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": client_email,
                "private_key": private_key,
                "token_uri": GOOGLE_TOKEN_URI,
            },
            scopes=GOOGLE_SHEETS_SCOPES,
        )
        service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        response = (
            service.spreadsheets()
            .values()
            .get(spreadsheetId=spreadsheet_id, range=range_name)
            .execute()
        )
    except HttpError as exc:
        logger.exception("Google Sheets API error for %s!%s", spreadsheet_id, range_name)
        raise UpstreamError("Failed to import sheet data") from exc
    except Exception as exc:
        logger.exception("Error fetching Google Sheet data")
        raise UpstreamError("Failed to import sheet data") from exc
    return response.get("values")


def fetch_range(settings: Settings, spreadsheet_id: str, range_name: str) -> list[list[Any]]:
    spreadsheet_id = (spreadsheet_id or "").strip()
    range_name = (range_name or "").strip()
    if not spreadsheet_id or not range_name:
        raise ValidationError("Spreadsheet ID and range are required")

    client_email, private_key = load_credentials(settings)
    values = get_sheet_values(
        spreadsheet_id,
        range_name,
        client_email=client_email,
        private_key=private_key,
    )
    if not values:
        raise NotFoundError("No data found in the specified range")
    return values


def section_from_range(range_name: str) -> str:
    if "!" not in range_name:
        return GOOGLE_SHEET_SECTION
    sheet = range_name.rsplit("!", 1)[0].strip()
    if len(sheet) >= 2 and sheet[0] == sheet[-1] == "'":
        sheet = sheet[1:-1].replace("''", "'")
    return sheet or GOOGLE_SHEET_SECTION
