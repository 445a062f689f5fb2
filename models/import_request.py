"""
Import request schemas.

Covers the submit payload, the attribute filter selection and the preview
and CSV parse helper endpoints.
"""

from pydantic import Field, model_validator
from typing import Any, Optional
from enum import Enum

from models.base import BaseSchema
from models.mapping import FieldMappingEntry
from models.markup import MarkupConfig

TOKEN_SEPARATOR = "::"


class DataSource(str, Enum):
    """Where source records come from."""
    CSV = "csv"
    API = "api"


class PublishMode(str, Enum):
    """Remote product status on create."""
    DRAFT = "draft"
    PUBLISHED = "published"


class ApiCredentials(BaseSchema):
    """Supplier API endpoint and bearer token."""

    api_url: str = Field(
        ...,
        min_length=1,
        description="First page URL of the supplier product API"
    )
    access_token: Optional[str] = Field(
        None,
        description="Bearer token; a leading 'Bearer ' is accepted"
    )


class ImportFilter(BaseSchema):
    """
    Final selection of source records.

    selected_values holds "key::value" tokens. select_all bypasses the
    selection entirely; selecting every value of every attribute is NOT the
    same thing and still filters.
    """

    selected_values: list[str] = Field(
        default_factory=list,
        description="Selected 'key::value' tokens"
    )
    select_all: bool = Field(
        default=False,
        description="Import every record regardless of selected_values"
    )

    def tokens(self) -> list[tuple[str, str]]:
        """Split tokens into (key, value) pairs, skipping malformed ones."""
        pairs = []
        for token in self.selected_values:
            key, sep, value = token.partition(TOKEN_SEPARATOR)
            if sep and key:
                pairs.append((key, value))
        return pairs

    def as_attribute_filter(self) -> dict[str, set[str]]:
        """Group tokens by key."""
        grouped: dict[str, set[str]] = {}
        for key, value in self.tokens():
            grouped.setdefault(key, set()).add(value)
        return grouped


class ImportRequest(BaseSchema):
    """
    Submit an import run.

    Required: shop, data_source, field_mapping and the payload matching
    data_source (csv_payload or api_credentials).
    """

    shop: str = Field(..., min_length=1, description="Shop domain")
    data_source: DataSource = Field(..., description="csv or api")
    api_credentials: Optional[ApiCredentials] = Field(None)
    csv_payload: Optional[str] = Field(None, description="Raw CSV text")
    field_mapping: list[FieldMappingEntry] = Field(
        ...,
        min_length=1,
        description="Ordered source → canonical mapping"
    )
    attribute_filter: ImportFilter = Field(default_factory=ImportFilter)
    markup_config: MarkupConfig = Field(default_factory=MarkupConfig)
    publish_mode: PublishMode = Field(default=PublishMode.DRAFT)
    connection_id: Optional[str] = Field(
        None,
        description="Supplier connection this run belongs to"
    )
    connection_name: Optional[str] = Field(
        None,
        description="Name used when saving a new supplier connection"
    )

    @model_validator(mode="after")
    def payload_matches_source(self) -> "ImportRequest":
        if self.data_source == DataSource.CSV and not self.csv_payload:
            raise ValueError("csv_payload is required for csv imports")
        if self.data_source == DataSource.API and self.api_credentials is None:
            raise ValueError("api_credentials are required for api imports")
        return self


class ImportStartedResponse(BaseSchema):
    """Returned as soon as the run is accepted."""

    session_id: str
    status: str


# ===================
# PREVIEW / PARSE
# ===================

class FilterPreviewRequest(BaseSchema):
    """Count how many records a strict attribute filter keeps."""

    records: list[dict[str, Any]] = Field(default_factory=list)
    attribute_filter: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Attribute key → allowed values"
    )


class FilterPreviewResponse(BaseSchema):
    total_count: int
    matching_count: int


class CsvParseRequest(BaseSchema):
    csv_payload: str = Field(..., description="Raw CSV text")


class CsvParseResponse(BaseSchema):
    headers: list[str]
    records: list[dict[str, str]]
    skipped_count: int
    delimiter: str
