"""
Map tagged service results onto HTTP responses.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import core.config as config

ERROR_STATUS_CODES = {
    "validation_error": 400,
    "auth_error": 401,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "storage_failure": 503,
    "internal_error": 500,
}


def to_response(result: dict, success_status: int = 200) -> JSONResponse:
    if result.get("status") == "error":
        status_code = ERROR_STATUS_CODES.get(result.get("error_type"), 500)
        return JSONResponse(status_code=status_code, content=result)
    return JSONResponse(status_code=success_status, content=result)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies with the same shape as service errors."""
    errors = exc.errors()
    field = None
    if errors:
        location = [str(part) for part in errors[0].get("loc", ()) if part not in ("body", "query")]
        field = ".".join(location) or None
    config.logger.info(
        "request_validation_error",
        extra={"path": request.url.path, "field": field},
    )
    payload = {
        "status": "error",
        "error_type": "validation_error",
        "tool": "request",
        "message": errors[0].get("msg", "Invalid request") if errors else "Invalid request",
    }
    if field:
        payload["field"] = field
    return JSONResponse(status_code=400, content=payload)
