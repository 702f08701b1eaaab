"""
JSON response envelope.

Every response body is {"success": bool, "data"?: ..., "error"?: {"type", "message", "detail"?}}.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from backend_quasarflow.core.exceptions import AppError


def success(data: Any = None, status_code: int = 200, headers: dict[str, str] | None = None) -> JSONResponse:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def error(
    status_code: int,
    message: str,
    type_: str = "ERROR",
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    err: dict[str, Any] = {"type": type_, "message": message}
    if detail:
        err["detail"] = detail
    return JSONResponse(status_code=status_code, content={"success": False, "error": err}, headers=headers)


def app_error(exc: AppError, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
        headers=headers,
    )
