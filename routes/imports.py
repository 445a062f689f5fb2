"""
Import API routes.

POST /api/imports returns a session id immediately; the run continues in a
background task and clients poll GET /api/imports/{session_id}.
"""

from fastapi import APIRouter, BackgroundTasks
from fastapi.responses import JSONResponse
import structlog

from models.import_request import (
    ImportRequest,
    ImportStartedResponse,
    FilterPreviewRequest,
    FilterPreviewResponse,
    CsvParseRequest,
    CsvParseResponse,
)
from models.import_session import ImportSessionResponse
from parsers.csv_parser import parse_csv_text
from services.filter_service import filter_strict
from services.import_service import get_import_service
from services.import_session_service import get_import_session_service
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
    # Unexpected error
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

@router.post("", response_model=ImportStartedResponse, status_code=202)
async def submit_import(data: ImportRequest, background_tasks: BackgroundTasks):
    """
    Start an import run.

    Raises:
        409: An import is already running for this shop
        422: Incomplete field mapping or unreadable CSV
    """
    try:
        service = get_import_service()
        prepared = service.start_import(data)
        background_tasks.add_task(service.run_import, prepared)

        return ImportStartedResponse(
            session_id=prepared.session.id,
            status=prepared.session.status.value
        )

    except Exception as e:
        return handle_error(e)


@router.post("/preview", response_model=FilterPreviewResponse)
async def preview_filter(data: FilterPreviewRequest):
    """Count records kept by a strict (AND) attribute filter."""
    try:
        matching = filter_strict(data.records, data.attribute_filter)
        return FilterPreviewResponse(
            total_count=len(data.records),
            matching_count=len(matching)
        )

    except Exception as e:
        return handle_error(e)


@router.post("/csv/parse", response_model=CsvParseResponse)
async def parse_csv(data: CsvParseRequest):
    """
    Parse a CSV payload for mapping and filter selection.

    Raises:
        422: Empty or unreadable CSV
    """
    try:
        result = parse_csv_text(data.csv_payload)
        return CsvParseResponse(**result.to_dict())

    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}", response_model=ImportSessionResponse)
async def get_import_progress(session_id: str):
    """
    Poll an import session.

    Raises:
        404: Session not found
    """
    try:
        service = get_import_session_service()
        return service.get_session_or_raise(session_id)

    except Exception as e:
        return handle_error(e)
