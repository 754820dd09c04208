from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class ValidationError(ApiError):
    """Malformed year, month or day. Raised before the store is touched."""

    def __init__(self, message: str, *, code: str = "VALIDATION_ERROR"):
        super().__init__(400, code, message)


class ConflictError(ApiError):
    def __init__(self, message: str, *, code: str = "PRESENCE_ALREADY_MARKED"):
        super().__init__(409, code, message)


class NotFoundError(ApiError):
    def __init__(self, message: str, *, code: str = "PRESENCE_NOT_FOUND"):
        super().__init__(404, code, message)


class UpstreamError(ApiError):
    """The document store or the roster provider failed."""

    def __init__(self, message: str, *, code: str = "UPSTREAM_ERROR"):
        super().__init__(502, code, message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
