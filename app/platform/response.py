from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Max-Age": "86400",
}


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def api_response(
    *,
    data: Optional[Any] = None,
    message: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """
    Single source of truth for success responses.

    The frontend reads a flat object with a ``success`` discriminant, so the
    payload keys are merged into the top level rather than nested.
    """
    content = {"success": True}
    if message is not None:
        content["message"] = message
    if data is not None:
        content.update(jsonable_encoder(data))

    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


def error_response(
    error: str,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    **extra: Any,
) -> JSONResponse:
    content = {
        "success": False,
        "error": error,
        "timestamp": utc_timestamp(),
    }
    content.update(jsonable_encoder(extra))
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)
