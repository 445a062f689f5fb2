"""
Saved import configuration schemas.

A configuration stores a complete wizard setup (source, mapping, filter,
markup, publish mode) under a name so it can be reused later.
"""

from pydantic import Field, model_validator
from typing import Optional

from models.base import BaseSchema, TimestampMixin
from models.import_request import DataSource, ImportFilter, PublishMode
from models.mapping import FieldMappingEntry
from models.markup import MarkupConfig

DEFAULT_CONFIGURATION_NAME = "Import Configuration"


class ImportConfigurationCreate(BaseSchema):
    """
    Save an import configuration.

    Required: shop and data_source. API configurations need api_url.
    """

    shop: str = Field(..., min_length=1)
    name: str = Field(default=DEFAULT_CONFIGURATION_NAME, min_length=1, max_length=200)
    data_source: DataSource
    api_url: Optional[str] = None
    access_token: Optional[str] = None
    csv_file_name: Optional[str] = None
    field_mapping: list[FieldMappingEntry] = Field(default_factory=list)
    attribute_filter: ImportFilter = Field(default_factory=ImportFilter)
    markup_config: MarkupConfig = Field(default_factory=MarkupConfig)
    publish_mode: PublishMode = Field(default=PublishMode.DRAFT)
    product_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def api_needs_url(self) -> "ImportConfigurationCreate":
        if self.data_source == DataSource.API and not self.api_url:
            raise ValueError("api_url is required for api configurations")
        return self


class ImportConfigurationUpdate(BaseSchema):
    """Partial update; only provided fields change."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    api_url: Optional[str] = None
    access_token: Optional[str] = None
    csv_file_name: Optional[str] = None
    field_mapping: Optional[list[FieldMappingEntry]] = None
    attribute_filter: Optional[ImportFilter] = None
    markup_config: Optional[MarkupConfig] = None
    publish_mode: Optional[PublishMode] = None
    product_count: Optional[int] = Field(None, ge=0)


class ImportConfigurationResponse(BaseSchema, TimestampMixin):
    """Saved configuration as returned by the API (token never exposed)."""

    id: str
    shop: str
    name: str
    data_source: DataSource
    api_url: Optional[str] = None
    csv_file_name: Optional[str] = None
    has_access_token: bool = False
    field_mapping: list[FieldMappingEntry] = Field(default_factory=list)
    attribute_filter: ImportFilter = Field(default_factory=ImportFilter)
    markup_config: MarkupConfig = Field(default_factory=MarkupConfig)
    publish_mode: PublishMode = PublishMode.DRAFT
    product_count: int = 0
    is_active: bool = True


class ImportConfigurationListResponse(BaseSchema):
    data: list[ImportConfigurationResponse]
    total: int
