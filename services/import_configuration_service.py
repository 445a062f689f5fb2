"""
Saved import configuration service.

Configurations are per shop and soft-deleted. Every write is scoped to the
owning shop, so another shop's id reads as not found.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.import_configuration import (
    ImportConfigurationCreate,
    ImportConfigurationResponse,
    ImportConfigurationUpdate,
)
from exceptions import DatabaseError, ImportConfigurationNotFoundError

logger = structlog.get_logger(__name__)


def to_configuration_response(row: dict) -> ImportConfigurationResponse:
    """Row → response, hiding the access token."""
    return ImportConfigurationResponse(**{
        **row,
        "field_mapping": row.get("field_mapping") or [],
        "attribute_filter": row.get("attribute_filter") or {},
        "markup_config": row.get("markup_config") or {},
        "has_access_token": bool(row.get("access_token")),
    })


class ImportConfigurationService:
    """import_configurations persistence."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "import_configurations"

    def list_configurations(self, shop: str) -> list[ImportConfigurationResponse]:
        """Active configurations for a shop, newest first."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("shop", shop)
                .eq("is_active", True)
                .execute()
            )
        except Exception as e:
            logger.error("import_configurations_list_failed", shop=shop, error=str(e))
            raise DatabaseError("select", str(e))

        rows = sorted(result.data or [], key=lambda r: r.get("created_at") or "", reverse=True)
        return [to_configuration_response(row) for row in rows]

    def get_row(self, configuration_id: str, shop: str) -> dict:
        """
        Raises:
            ImportConfigurationNotFoundError: If missing, inactive or owned by another shop
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", configuration_id)
                .eq("shop", shop)
                .eq("is_active", True)
                .execute()
            )
        except Exception as e:
            logger.error("import_configuration_get_failed", configuration_id=configuration_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ImportConfigurationNotFoundError(configuration_id)
        return result.data[0]

    def create(self, data: ImportConfigurationCreate) -> ImportConfigurationResponse:
        row = {
            **data.model_dump(mode="json"),
            "is_active": True,
        }

        try:
            result = self.db.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error("import_configuration_create_failed", shop=data.shop, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info(
            "import_configuration_created",
            shop=data.shop,
            name=data.name,
            data_source=data.data_source.value
        )
        return to_configuration_response(result.data[0])

    def update(
        self,
        configuration_id: str,
        shop: str,
        data: ImportConfigurationUpdate
    ) -> ImportConfigurationResponse:
        """
        Raises:
            ImportConfigurationNotFoundError: If not found for this shop
        """
        row = self.get_row(configuration_id, shop)

        fields = data.model_dump(mode="json", exclude_unset=True)
        if not fields:
            return to_configuration_response(row)

        self._update(configuration_id, fields)
        logger.info("import_configuration_updated", configuration_id=configuration_id, fields=sorted(fields))
        return to_configuration_response({**row, **fields})

    def deactivate(self, configuration_id: str, shop: str) -> None:
        """
        Raises:
            ImportConfigurationNotFoundError: If not found for this shop
        """
        self.get_row(configuration_id, shop)
        self._update(configuration_id, {"is_active": False})
        logger.info("import_configuration_deactivated", configuration_id=configuration_id)

    def _update(self, configuration_id: str, fields: dict) -> None:
        try:
            self.db.table(self.table).update(fields).eq("id", configuration_id).execute()
        except Exception as e:
            logger.error("import_configuration_update_failed", configuration_id=configuration_id, error=str(e))
            raise DatabaseError("update", str(e))


_import_configuration_service: Optional[ImportConfigurationService] = None


def get_import_configuration_service() -> ImportConfigurationService:
    """Get or create import configuration service singleton."""
    global _import_configuration_service
    if _import_configuration_service is None:
        _import_configuration_service = ImportConfigurationService()
    return _import_configuration_service
