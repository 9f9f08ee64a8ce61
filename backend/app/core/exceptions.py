"""Application exceptions and their FastAPI handlers.

Every business error derives from AppError and is rendered as::

    {"error": {"code": "...", "message": "...", "detail": {...}}}
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("scada.errors")


class AppError(Exception):
    """Top-level application error."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error."

    def __init__(
        self,
        message: str | None = None,
        *,
        detail: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.detail = detail
        super().__init__(self.message)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Requested resource was not found."


class PointValueError(AppError):
    """Raw point value cannot be read as an active/inactive signal."""

    status_code = 422
    code = "INVALID_POINT_VALUE"
    message = "Point value is not boolean-coercible."


class AlarmStoreError(AppError):
    """Alarm store read/write failed; the event is not processed."""

    status_code = 503
    code = "ALARM_STORE_ERROR"
    message = "Alarm store is unavailable."


class AlarmInvariantError(AlarmStoreError):
    """More than one open alarm observed for a single point."""

    status_code = 500
    code = "ALARM_INVARIANT"
    message = "Alarm store invariant violated."


def _error_body(code: str, message: str, detail: Any = None) -> dict:
    body: dict[str, Any] = {"error": {"code": code, "message": message}}
    if detail is not None:
        body["error"]["detail"] = detail
    return body


async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s %s", exc.code, exc.message, exc.detail or "")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.detail),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
