"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.imports import router as imports_router
from routes.connections import router as connections_router
from routes.sources import router as sources_router
from routes.inventory_sync import router as inventory_sync_router
from routes.import_configurations import router as import_configurations_router

__all__ = [
    "imports_router",
    "connections_router",
    "sources_router",
    "inventory_sync_router",
    "import_configurations_router",
]
