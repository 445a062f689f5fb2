"""
Saved import configuration API routes.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from models.import_configuration import (
    ImportConfigurationCreate,
    ImportConfigurationUpdate,
    ImportConfigurationResponse,
    ImportConfigurationListResponse,
)
from services.import_configuration_service import get_import_configuration_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

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


# ===================
# ROUTES
# ===================

@router.get("", response_model=ImportConfigurationListResponse)
async def list_configurations(shop: str = Query(..., description="Shop domain")):
    """List active saved configurations for a shop, newest first."""
    try:
        service = get_import_configuration_service()
        configurations = service.list_configurations(shop)
        return ImportConfigurationListResponse(data=configurations, total=len(configurations))

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=ImportConfigurationResponse, status_code=201)
async def create_configuration(data: ImportConfigurationCreate):
    """
    Save an import configuration.

    Raises:
        422: Validation error
    """
    try:
        service = get_import_configuration_service()
        return service.create(data)

    except Exception as e:
        return handle_error(e)


@router.patch("/{configuration_id}", response_model=ImportConfigurationResponse)
async def update_configuration(
    configuration_id: str,
    data: ImportConfigurationUpdate,
    shop: str = Query(..., description="Shop domain")
):
    """
    Update a saved configuration.

    Raises:
        404: Not found for this shop
    """
    try:
        service = get_import_configuration_service()
        return service.update(configuration_id, shop, data)

    except Exception as e:
        return handle_error(e)


@router.delete("/{configuration_id}", status_code=204)
async def delete_configuration(
    configuration_id: str,
    shop: str = Query(..., description="Shop domain")
):
    """
    Deactivate a saved configuration (soft delete).

    Raises:
        404: Not found for this shop
    """
    try:
        service = get_import_configuration_service()
        service.deactivate(configuration_id, shop)
        return None  # 204 No Content

    except Exception as e:
        return handle_error(e)
