from fastapi import HTTPException


class CrmError(HTTPException):
    """Base error; carries the HTTP status the web layer responds with."""

    default_status = 400

    def __init__(self, detail: str, *, status_code: int | None = None):
        super().__init__(status_code=status_code or self.default_status, detail=detail)


class ValidationError(CrmError):
    default_status = 400


class FormatError(CrmError):
    default_status = 400


class NotFoundError(CrmError):
    default_status = 404


class ConfigurationError(CrmError):
    default_status = 500


class UpstreamError(CrmError):
    default_status = 500
