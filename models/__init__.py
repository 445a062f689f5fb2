"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, TimestampMixin
from models.mapping import CanonicalField, FieldMappingEntry, REQUIRED_TARGETS
from models.markup import (
    ConditionOperator,
    MarkupType,
    MatchMode,
    MarkupCondition,
    MarkupConfig,
)
from models.catalog import (
    CanonicalVariant,
    ReconciliationRecord,
    LocalCatalogEntry,
    RemoteVariant,
    RemoteCatalogEntry,
)
from models.import_session import (
    ImportStatus,
    ImportSessionResponse,
    is_valid_import_status_transition,
)
from models.import_request import (
    DataSource,
    PublishMode,
    ApiCredentials,
    ImportFilter,
    ImportRequest,
    ImportStartedResponse,
    FilterPreviewRequest,
    FilterPreviewResponse,
    CsvParseRequest,
    CsvParseResponse,
)
from models.connection import (
    ConnectionKey,
    ConnectionCreate,
    ConnectionResponse,
    ConnectionListResponse,
    ConnectionSchedule,
    ScheduleFrequency,
    CleanupDuplicatesResponse,
    ScheduledRunResponse,
    ScheduledRunResult,
)
from models.import_configuration import (
    ImportConfigurationCreate,
    ImportConfigurationUpdate,
    ImportConfigurationResponse,
    ImportConfigurationListResponse,
)
from models.source import (
    SourceSampleRequest,
    SourceValidationResponse,
    SourcePagination,
    SourceSampleResponse,
    SourceFieldsResponse,
)
from models.inventory_sync import (
    IdentifierType,
    InventoryPolicy,
    InventorySyncRequest,
    InventorySyncResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Mapping
    "CanonicalField",
    "FieldMappingEntry",
    "REQUIRED_TARGETS",

    # Markup
    "ConditionOperator",
    "MarkupType",
    "MatchMode",
    "MarkupCondition",
    "MarkupConfig",

    # Catalog
    "CanonicalVariant",
    "ReconciliationRecord",
    "LocalCatalogEntry",
    "RemoteVariant",
    "RemoteCatalogEntry",

    # Import sessions
    "ImportStatus",
    "ImportSessionResponse",
    "is_valid_import_status_transition",

    # Import requests
    "DataSource",
    "PublishMode",
    "ApiCredentials",
    "ImportFilter",
    "ImportRequest",
    "ImportStartedResponse",
    "FilterPreviewRequest",
    "FilterPreviewResponse",
    "CsvParseRequest",
    "CsvParseResponse",

    # Connections
    "ConnectionKey",
    "ConnectionCreate",
    "ConnectionResponse",
    "ConnectionListResponse",
    "ConnectionSchedule",
    "ScheduleFrequency",
    "CleanupDuplicatesResponse",
    "ScheduledRunResponse",
    "ScheduledRunResult",

    # Import configurations
    "ImportConfigurationCreate",
    "ImportConfigurationUpdate",
    "ImportConfigurationResponse",
    "ImportConfigurationListResponse",

    # Sources
    "SourceSampleRequest",
    "SourceValidationResponse",
    "SourcePagination",
    "SourceSampleResponse",
    "SourceFieldsResponse",

    # Inventory sync
    "IdentifierType",
    "InventoryPolicy",
    "InventorySyncRequest",
    "InventorySyncResponse",
]
