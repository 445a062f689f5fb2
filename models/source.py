"""
Supplier API tooling schemas (validate, sample, field discovery).
"""

from pydantic import Field
from typing import Any, Optional

from models.base import BaseSchema
from models.import_request import ApiCredentials


class SourceSampleRequest(ApiCredentials):
    page: int = Field(default=1, ge=1)


class SourceValidationResponse(BaseSchema):
    success: bool
    status_code: Optional[int] = None
    message: str
    error: Optional[str] = None


class SourcePagination(BaseSchema):
    current_page: Optional[int] = None
    per_page: Optional[int] = None
    total: Optional[int] = None
    next_page_url: Optional[str] = None
    prev_page_url: Optional[str] = None


class SourceSampleResponse(BaseSchema):
    items: list[dict[str, Any]]
    pagination: SourcePagination


class SourceFieldsResponse(BaseSchema):
    fields: list[str]
    sample: Optional[dict[str, Any]] = None
