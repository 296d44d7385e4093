from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope(status_code: int, message: str, data: Optional[Any] = None) -> dict:
    """`{status_code, status, message, data}`; status is "error" from 400 up."""
    return {
        "status_code": status_code,
        "status": "success" if status_code < 400 else "error",
        "message": message,
        "data": jsonable_encoder(data) if data is not None else {},
    }


def api_response(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Every route answers through this, success or failure."""
    return JSONResponse(status_code=status_code, content=envelope(status_code, message, data))


def error_response(
    *,
    message: str,
    status_code: int,
    details: Optional[str] = None,
) -> JSONResponse:
    """Error envelope; `details` lands under data when present."""
    return api_response(
        message=message,
        status_code=status_code,
        data={"details": details} if details else None,
    )
