"""
Import session schemas and status transitions.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
from datetime import datetime

from models.base import BaseSchema


class ImportStatus(str, Enum):
    """Import session status values."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


# Status order for transition validation (lower index = earlier in flow)
STATUS_ORDER = {
    ImportStatus.PENDING: 0,
    ImportStatus.PROCESSING: 1,
    ImportStatus.COMPLETED: 2,
}


def is_valid_import_status_transition(current: ImportStatus, new: ImportStatus) -> bool:
    """
    Check if status transition is valid.

    Rules:
    - Can skip forward (pending → completed is OK, used for empty runs)
    - Cannot go backward
    - completed is terminal
    """
    if current == ImportStatus.COMPLETED:
        return False

    return STATUS_ORDER[new] > STATUS_ORDER[current]


class ImportSessionResponse(BaseSchema):
    """
    Snapshot of an import run.

    Returned by the progress polling endpoint.
    """

    id: str = Field(..., description="Session UUID")
    shop: str = Field(..., description="Shop domain")
    status: ImportStatus = Field(..., description="Current status")
    total_count: int = Field(default=0, ge=0)
    imported_count: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)
    current_label: Optional[str] = Field(None, description="Most recently attempted record")
    data_source: Optional[str] = Field(None)
    publish_mode: Optional[str] = Field(None)
    error_message: Optional[str] = Field(None, description="Set when the source stage failed or the run crashed")
    created_at: Optional[datetime] = Field(None)
    completed_at: Optional[datetime] = Field(None)

    @property
    def attempted_count(self) -> int:
        return self.imported_count + self.failed_count
