import logging

from fastapi import APIRouter, Depends, status

from a11y_scan.features.accessibility.schemas.accessibility import ScanRequest
from a11y_scan.features.accessibility.services.orchestration.scan_orchestrator import (
    ScanOrchestrator,
    get_scan_orchestrator,
)
from a11y_scan.platform.exceptions import ScanError
from a11y_scan.platform.response import api_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["accessibility"])


@router.post("/check-accessibility", summary="Scan a public URL for accessibility issues")
async def check_accessibility(
    data: ScanRequest,
    orchestrator: ScanOrchestrator = Depends(get_scan_orchestrator),
):
    """
    Run an on-demand accessibility scan of `url`.

    This endpoint:
    - Rejects missing or malformed URLs before a browser is started (400)
    - Loads the page in a throwaway headless Chrome, images blocked, DOM-ready only
    - Runs axe-core with a reduced WCAG 2.x ruleset
    - Adds plain-language AI explanations to the first few violations
    - Always shuts the browser down before responding

    Pages that cannot be loaded answer 400; browser or deadline failures answer 500.
    A report whose analysis timed out is still returned, with `partial: true`.
    """
    try:
        report = await orchestrator.scan(data)
    except ScanError as e:
        if e.status_code >= 500:
            logger.error(f"Accessibility check failed: {e.message} {e.details or ''}")
        return error_response(message=e.message, status_code=e.status_code, details=e.details)
    except Exception as e:
        logger.error(f"Full accessibility check failed: {str(e)}", exc_info=True)
        return error_response(
            message="Failed to perform accessibility check.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=str(e),
        )

    return api_response(
        data=report.model_dump(by_alias=True, mode="json"),
        message="Accessibility check completed",
    )
