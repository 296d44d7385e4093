import time
from datetime import datetime, timezone

from fastapi import APIRouter, status

from a11y_scan.platform.config import settings
from a11y_scan.platform.response import api_response

_STARTED_AT = time.monotonic()

router = APIRouter()


@router.get("/health", tags=["health"])
async def health_check():
    return api_response(
        data={
            "status": "ok",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(time.monotonic() - _STARTED_AT, 1),
        },
        message="Service is healthy",
        status_code=status.HTTP_200_OK,
    )
