"""
Supplier API tooling routes: validate a connection, preview a page and
discover mappable fields.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from integrations.supplier_api import fetch_sample, sample_fields, validate_connection
from models.import_request import ApiCredentials
from models.source import (
    SourceSampleRequest,
    SourceValidationResponse,
    SourceSampleResponse,
    SourceFieldsResponse,
)
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


@router.post("/validate", response_model=SourceValidationResponse)
async def validate_source(data: ApiCredentials):
    """Check the endpoint answers with a 2xx (10s timeout)."""
    try:
        return SourceValidationResponse(**validate_connection(data.api_url, data.access_token))

    except Exception as e:
        return handle_error(e)


@router.post("/sample", response_model=SourceSampleResponse)
async def sample_source(data: SourceSampleRequest):
    """
    Fetch one page of items.

    Raises:
        503: Supplier API unreachable or returned an error
    """
    try:
        items, pagination = fetch_sample(data.api_url, data.access_token, page=data.page)
        return SourceSampleResponse(items=items, pagination=pagination)

    except Exception as e:
        return handle_error(e)


@router.post("/fields", response_model=SourceFieldsResponse)
async def discover_fields(data: ApiCredentials):
    """List dotted field paths of the first item for the mapping step."""
    try:
        items, _ = fetch_sample(data.api_url, data.access_token)
        return SourceFieldsResponse(
            fields=sample_fields(items),
            sample=items[0] if items else None
        )

    except Exception as e:
        return handle_error(e)
