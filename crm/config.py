import os


class Settings:
    app_host: str = os.getenv("APP_HOST", "0.0.0.0")
    app_port: int = int(os.getenv("APP_PORT", "8000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    google_sheets_client_email: str = os.getenv("GOOGLE_SHEETS_CLIENT_EMAIL", "")
    # May hold literal "\n" sequences; unescaped by google_sheets.load_credentials.
    google_sheets_private_key: str = os.getenv("GOOGLE_SHEETS_PRIVATE_KEY", "")


settings = Settings()

DEFAULT_SECTION = "Default"
NOTES_FIELD = "Notes"
LAST_CONTACT_FIELD = "Last Contact Date"

VIEW_ALL = "companies"
VIEW_IMPORT = "import"
# Section tabs are keyed "section:<name>" so a sheet called "import" stays a section.
SECTION_VIEW_PREFIX = "section:"

# Named lookup -> header used by the add/edit form.
FIELD_HEADERS = {
    "name": "Company Name",
    "contact": "Contact Person",
    "email": "Email",
    "phone": "Phone",
    "address": "Address",
    "last_contact_date": LAST_CONTACT_FIELD,
    "notes": NOTES_FIELD,
}

REQUIRED_FORM_FIELDS = [
    "Company Name",
    "Contact Person",
    "Email",
    "Phone",
    "Address",
    LAST_CONTACT_FIELD,
]

BLANK_MARKERS = {"null", "undefined"}

# Italian header fragments per named lookup. Order matters: first match wins.
COLUMN_HINTS = {
    "name": ["nome", "azienda", "società", "impresa", "ragione sociale", "nome azienda"],
    "address": ["indirizzo", "via", "sede", "località", "luogo"],
    "phone": ["telefono", "tel", "numero di telefono", "cellulare", "mobile"],
    "contact": ["contatto", "nome contatto", "referente", "persona di contatto", "responsabile"],
    "email": ["email", "e-mail", "posta elettronica", "mail"],
    "last_contact_date": ["data", "ultimo contatto", "data ultimo contatto", "ultima data", "giorno"],
    "notes": ["note", "commenti", "osservazioni", "descrizione", "dettagli"],
}

WORKBOOK_EXTENSIONS = (".xlsx", ".xlsm", ".xltx", ".xltm")
LEGACY_WORKBOOK_EXTENSIONS = (".xls",)

GOOGLE_SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_SHEET_SECTION = "Google Sheet"
