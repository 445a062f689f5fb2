"""
Supplier connection schemas.
"""

from pydantic import Field, field_validator, model_validator
from typing import Any, Optional
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from models.base import BaseSchema, TimestampMixin
from models.mapping import FieldMappingEntry
from models.markup import MarkupConfig
from models.import_request import ImportFilter


@dataclass(frozen=True)
class ConnectionKey:
    """
    Identity of a supplier connection for duplicate detection.

    endpoint is the API URL, or the CSV file name for file-based suppliers.
    """
    supplier_name: str
    endpoint: str

    @classmethod
    def from_row(cls, row: dict) -> "ConnectionKey":
        supplier = row.get("supplier_name") or row.get("name") or ""
        endpoint = row.get("api_url") or row.get("csv_file_name") or ""
        return cls(supplier_name=supplier.strip().lower(), endpoint=endpoint.strip())


class ScheduleFrequency(str, Enum):
    """How often a scheduled resync runs."""
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ConnectionSchedule(BaseSchema):
    """
    Automatic resync schedule of an API connection.

    time is HH:MM in UTC; hourly schedules use only the minutes.
    """

    enabled: bool = Field(default=False)
    frequency: ScheduleFrequency = Field(default=ScheduleFrequency.DAILY)
    time: str = Field(
        default="09:00",
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="Run time, HH:MM (UTC)"
    )

    @field_validator("frequency", mode="before")
    @classmethod
    def lowercase_frequency(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def hour(self) -> int:
        return int(self.time[:2])

    @property
    def minute(self) -> int:
        return int(self.time[3:])


class ConnectionCreate(BaseSchema):
    """
    Create a supplier connection.

    Required: shop, name and one of api_url / csv_file_name.
    """

    shop: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    supplier_name: Optional[str] = Field(None, max_length=200)
    supplier_email: Optional[str] = Field(None, max_length=200)
    api_url: Optional[str] = Field(None)
    access_token: Optional[str] = Field(None)
    csv_file_name: Optional[str] = Field(None)
    field_mapping: list[FieldMappingEntry] = Field(default_factory=list)
    attribute_filter: ImportFilter = Field(default_factory=ImportFilter)
    markup_config: MarkupConfig = Field(default_factory=MarkupConfig)
    schedule: ConnectionSchedule = Field(default_factory=ConnectionSchedule)

    @model_validator(mode="after")
    def has_endpoint(self) -> "ConnectionCreate":
        if not self.api_url and not self.csv_file_name:
            raise ValueError("api_url or csv_file_name is required")
        if self.schedule.enabled and not self.api_url:
            raise ValueError("only API connections can be scheduled")
        return self

    @property
    def key(self) -> ConnectionKey:
        return ConnectionKey.from_row(self.model_dump())


class ConnectionResponse(BaseSchema, TimestampMixin):
    """Supplier connection as returned by the API (token never exposed)."""

    id: str
    shop: str
    name: str
    supplier_name: Optional[str] = None
    supplier_email: Optional[str] = None
    api_url: Optional[str] = None
    csv_file_name: Optional[str] = None
    has_access_token: bool = False
    field_mapping: list[FieldMappingEntry] = Field(default_factory=list)
    attribute_filter: ImportFilter = Field(default_factory=ImportFilter)
    markup_config: MarkupConfig = Field(default_factory=MarkupConfig)
    schedule: ConnectionSchedule = Field(default_factory=ConnectionSchedule)
    is_active: bool = True
    product_count: int = 0
    last_sync_at: Optional[datetime] = None
    last_scheduled_at: Optional[datetime] = None


class ConnectionListResponse(BaseSchema):
    data: list[ConnectionResponse]
    total: int


class CleanupDuplicatesResponse(BaseSchema):
    deactivated_count: int


# ===================
# SCHEDULED RESYNC
# ===================

class ScheduledRunResult(BaseSchema):
    """Outcome for one due connection."""

    connection_id: str
    connection_name: str
    success: bool
    session_id: Optional[str] = None
    error: Optional[str] = None


class ScheduledRunResponse(BaseSchema):
    """What one scheduler tick started."""

    checked_count: int = Field(..., description="Scheduled connections looked at")
    started_count: int
    results: list[ScheduledRunResult] = Field(default_factory=list)
