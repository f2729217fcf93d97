from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}


class NotFoundError(ApiError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(404, "NOT_FOUND", message, details)


class InvalidInputError(ApiError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(422, "INVALID_INPUT", message, details)


class ConflictError(ApiError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(409, "CONFLICT", message, details)


class InvalidStateError(ApiError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(409, "INVALID_STATE", message, details)


class InsufficientBalanceError(ApiError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(422, "INSUFFICIENT_BALANCE", message, details)


class UnauthorizedError(ApiError):
    def __init__(self, message: str = "Insufficient permissions.", details: dict[str, Any] | None = None):
        super().__init__(403, "UNAUTHORIZED", message, details)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
