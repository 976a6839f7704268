"""
Uniform response envelope.

Every body the API returns has the shape
``{success, message, data?, errors?, timestamp}``. Success envelopes never
carry ``errors`` and failure envelopes never carry ``data``. The HTTP status
is chosen by the caller.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_envelope(
    success: bool,
    message: str,
    data: Any = None,
    errors: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Build the envelope dict, dropping the field the outcome forbids."""
    body: Dict[str, Any] = {"success": success, "message": message}
    if success:
        if data is not None:
            body["data"] = jsonable_encoder(data, by_alias=True)
    elif errors:
        body["errors"] = [str(e) for e in errors]
    body["timestamp"] = _timestamp()
    return body


def success_response(
    message: str,
    data: Any = None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=build_envelope(True, message, data=data))


def created_response(message: str, data: Any = None) -> JSONResponse:
    return success_response(message, data, status_code=status.HTTP_201_CREATED)


def error_response(
    message: str,
    status_code: int,
    errors: Optional[List[str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=build_envelope(False, message, errors=errors),
        headers=headers,
    )
