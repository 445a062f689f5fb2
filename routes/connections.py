"""
Supplier connection API routes.
"""

from fastapi import APIRouter, BackgroundTasks, Query
from typing import Optional
from fastapi.responses import JSONResponse
import structlog

from models.connection import (
    ConnectionCreate,
    ConnectionResponse,
    ConnectionListResponse,
    ConnectionSchedule,
    CleanupDuplicatesResponse,
    ScheduledRunResponse,
)
from models.import_request import ImportStartedResponse
from services.connection_service import get_connection_service
from services.import_service import get_import_service
from services.schedule_service import get_schedule_service
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

@router.get("", response_model=ConnectionListResponse)
async def list_connections(shop: str = Query(..., description="Shop domain")):
    """List active supplier connections for a shop, newest first."""
    try:
        service = get_connection_service()
        connections = service.list_connections(shop)
        return ConnectionListResponse(data=connections, total=len(connections))

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=ConnectionResponse, status_code=201)
async def create_connection(data: ConnectionCreate):
    """
    Save a supplier connection.

    Raises:
        409: Same supplier and endpoint already saved
        422: Validation error
    """
    try:
        service = get_connection_service()
        return service.create(data)

    except Exception as e:
        return handle_error(e)


@router.post("/cleanup-duplicates", response_model=CleanupDuplicatesResponse)
async def cleanup_duplicates(shop: str = Query(..., description="Shop domain")):
    """Keep the newest connection per supplier endpoint; deactivate the rest."""
    try:
        service = get_connection_service()
        return CleanupDuplicatesResponse(deactivated_count=service.cleanup_duplicates(shop))

    except Exception as e:
        return handle_error(e)


@router.post("/run-scheduled", response_model=ScheduledRunResponse)
async def run_scheduled(
    background_tasks: BackgroundTasks,
    shop: Optional[str] = Query(None, description="Restrict to one shop")
):
    """
    Start every due scheduled resync. Called by an external cron.

    Connections that cannot start are listed in results with their error.
    """
    try:
        service = get_schedule_service()
        response, prepared_runs = service.run_due(shop=shop)
        for prepared in prepared_runs:
            background_tasks.add_task(service.import_service.run_import, prepared)
        return response

    except Exception as e:
        return handle_error(e)


@router.put("/{connection_id}/schedule", response_model=ConnectionResponse)
async def update_schedule(connection_id: str, schedule: ConnectionSchedule):
    """
    Set a connection's automatic resync schedule.

    Raises:
        404: Connection not found
        422: CSV connection or invalid time
    """
    try:
        service = get_connection_service()
        return service.update_schedule(connection_id, schedule)

    except Exception as e:
        return handle_error(e)


@router.post("/{connection_id}/resync", response_model=ImportStartedResponse, status_code=202)
async def resync_connection(connection_id: str, background_tasks: BackgroundTasks):
    """
    Re-run an import from a saved API connection.

    Raises:
        404: Connection not found
        409: An import is already running for this shop
        422: CSV connection or incomplete stored mapping
    """
    try:
        request = get_connection_service().build_resync_request(connection_id)

        service = get_import_service()
        prepared = service.start_import(request)
        background_tasks.add_task(service.run_import, prepared)

        return ImportStartedResponse(
            session_id=prepared.session.id,
            status=prepared.session.status.value
        )

    except Exception as e:
        return handle_error(e)


@router.delete("/{connection_id}", status_code=204)
async def delete_connection(connection_id: str):
    """
    Deactivate a connection (soft delete).

    Raises:
        404: Connection not found
    """
    try:
        service = get_connection_service()
        service.deactivate(connection_id)
        return None  # 204 No Content

    except Exception as e:
        return handle_error(e)
