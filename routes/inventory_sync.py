"""
CSV inventory sync route.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.inventory_sync import InventorySyncRequest, InventorySyncResponse
from services.inventory_sync_service import get_inventory_sync_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


@router.post("", response_model=InventorySyncResponse)
async def sync_inventory(data: InventorySyncRequest):
    """
    Set on-hand quantities from a stock CSV.

    Per-row problems are reported in the response, not raised.

    Raises:
        422: Unreadable CSV or missing column
        503: Shopify not configured or locations unavailable
    """
    try:
        service = get_inventory_sync_service()
        return service.sync(data)

    except Exception as e:
        return handle_error(e)
