"""
Business logic services.

Each service handles one domain area.
"""

from services.import_service import ImportService, get_import_service
from services.import_session_service import (
    ImportSessionService,
    ImportProgress,
    get_import_session_service,
)
from services.local_catalog_service import LocalCatalogService, get_local_catalog_service
from services.reconciliation_service import (
    ReconciliationService,
    ReconciliationAction,
    Resolution,
)
from services.connection_service import ConnectionService, get_connection_service
from services.inventory_sync_service import InventorySyncService, get_inventory_sync_service
from services.schedule_service import ScheduleService, get_schedule_service
from services.import_configuration_service import (
    ImportConfigurationService,
    get_import_configuration_service,
)

__all__ = [
    "ImportService",
    "get_import_service",
    "ImportSessionService",
    "ImportProgress",
    "get_import_session_service",
    "LocalCatalogService",
    "get_local_catalog_service",
    "ReconciliationService",
    "ReconciliationAction",
    "Resolution",
    "ConnectionService",
    "get_connection_service",
    "InventorySyncService",
    "get_inventory_sync_service",
    "ScheduleService",
    "get_schedule_service",
    "ImportConfigurationService",
    "get_import_configuration_service",
]
