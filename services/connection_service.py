"""
Supplier connection service.

Connections remember a supplier's endpoint, token, mapping, filter and
markup so an import can be re-run (resync) without the wizard.
"""

from datetime import datetime, timezone
from typing import Optional
import structlog

from config import get_supabase_client
from models.connection import (
    ConnectionCreate,
    ConnectionKey,
    ConnectionResponse,
    ConnectionSchedule,
)
from models.import_request import ApiCredentials, DataSource, ImportRequest
from models.mapping import FieldMappingEntry
from exceptions import (
    ConnectionNotFoundError,
    DatabaseError,
    DuplicateError,
    InvalidFieldMappingError,
    ValidationError,
)
from services.field_mapping_service import missing_required_targets

logger = structlog.get_logger(__name__)


def to_connection_response(row: dict) -> ConnectionResponse:
    """Row → response, hiding the access token."""
    return ConnectionResponse(**{
        **row,
        "field_mapping": row.get("field_mapping") or [],
        "attribute_filter": row.get("attribute_filter") or {},
        "markup_config": row.get("markup_config") or {},
        "schedule": row.get("schedule") or {},
        "has_access_token": bool(row.get("access_token")),
    })


class ConnectionService:
    """
    supplier_connections persistence.

    Duplicates share a ConnectionKey (supplier name + endpoint).
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "supplier_connections"

    # ===================
    # READ OPERATIONS
    # ===================

    def _active_rows(self, shop: str) -> list[dict]:
        """Active connections for a shop, newest first."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("shop", shop)
                .eq("is_active", True)
                .execute()
            )
        except Exception as e:
            logger.error("connections_list_failed", shop=shop, error=str(e))
            raise DatabaseError("select", str(e))

        return sorted(result.data or [], key=lambda r: r.get("created_at") or "", reverse=True)

    def list_connections(self, shop: str) -> list[ConnectionResponse]:
        return [to_connection_response(row) for row in self._active_rows(shop)]

    def get_row(self, connection_id: str) -> dict:
        """
        Raises:
            ConnectionNotFoundError: If connection doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", connection_id)
                .execute()
            )
        except Exception as e:
            logger.error("connection_get_failed", connection_id=connection_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ConnectionNotFoundError(connection_id)
        return result.data[0]

    def find_by_key(self, shop: str, key: ConnectionKey) -> Optional[dict]:
        for row in self._active_rows(shop):
            if ConnectionKey.from_row(row) == key:
                return row
        return None

    def scheduled_rows(self, shop: Optional[str] = None) -> list[dict]:
        """Active API connections with an enabled schedule, optionally for one shop."""
        try:
            query = self.db.table(self.table).select("*").eq("is_active", True)
            if shop:
                query = query.eq("shop", shop)
            result = query.execute()
        except Exception as e:
            logger.error("scheduled_connections_list_failed", shop=shop, error=str(e))
            raise DatabaseError("select", str(e))

        return [
            row for row in result.data or []
            if row.get("api_url") and (row.get("schedule") or {}).get("enabled")
        ]

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: ConnectionCreate) -> ConnectionResponse:
        """
        Create a connection.

        Raises:
            DuplicateError: If an active connection has the same key
        """
        key = data.key
        if self.find_by_key(data.shop, key):
            raise DuplicateError("Supplier connection", "endpoint", key.endpoint)

        row = {
            **data.model_dump(mode="json"),
            "is_active": True,
            "product_count": 0,
        }

        try:
            result = self.db.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error("connection_create_failed", shop=data.shop, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info("connection_created", shop=data.shop, supplier=key.supplier_name)
        return to_connection_response(result.data[0])

    def save_from_request(self, request: ImportRequest) -> str:
        """Reuse the matching connection for an API import, or create one."""
        credentials = request.api_credentials
        data = ConnectionCreate(
            shop=request.shop,
            name=request.connection_name or credentials.api_url,
            api_url=credentials.api_url,
            access_token=credentials.access_token,
            field_mapping=request.field_mapping,
            attribute_filter=request.attribute_filter,
            markup_config=request.markup_config,
        )

        existing = self.find_by_key(request.shop, data.key)
        if existing:
            self._update(existing["id"], {
                "access_token": credentials.access_token,
                "field_mapping": data.model_dump(mode="json")["field_mapping"],
                "attribute_filter": data.attribute_filter.model_dump(mode="json"),
                "markup_config": data.markup_config.model_dump(mode="json"),
            })
            return existing["id"]

        return self.create(data).id

    def deactivate(self, connection_id: str) -> None:
        self.get_row(connection_id)
        self._update(connection_id, {"is_active": False})
        logger.info("connection_deactivated", connection_id=connection_id)

    def cleanup_duplicates(self, shop: str) -> int:
        """
        Keep the newest connection per key and deactivate the rest.

        Returns:
            Number of connections deactivated
        """
        seen: set[ConnectionKey] = set()
        duplicates = []

        for row in self._active_rows(shop):
            key = ConnectionKey.from_row(row)
            if key in seen:
                duplicates.append(row["id"])
            else:
                seen.add(key)

        for connection_id in duplicates:
            self._update(connection_id, {"is_active": False})

        logger.info("connection_duplicates_cleaned", shop=shop, deactivated=len(duplicates))
        return len(duplicates)

    def update_schedule(self, connection_id: str, schedule: ConnectionSchedule) -> ConnectionResponse:
        """
        Replace a connection's resync schedule.

        Raises:
            ConnectionNotFoundError: If connection doesn't exist
            ValidationError: If enabling a schedule on a CSV connection
        """
        row = self.get_row(connection_id)

        if schedule.enabled and not row.get("api_url"):
            raise ValidationError(
                message="Only API connections can be scheduled",
                code="SCHEDULE_NOT_SUPPORTED",
                details={"connection_id": connection_id}
            )

        fields = {"schedule": schedule.model_dump(mode="json")}
        self._update(connection_id, fields)

        logger.info(
            "connection_schedule_updated",
            connection_id=connection_id,
            enabled=schedule.enabled,
            frequency=schedule.frequency.value,
            time=schedule.time
        )
        return to_connection_response({**row, **fields})

    def mark_scheduled(self, connection_id: str, at: datetime) -> None:
        """Stamp when the scheduler last started a run."""
        self._update(connection_id, {"last_scheduled_at": at.isoformat()})

    def record_sync(self, connection_id: str, product_count: int) -> None:
        self._update(connection_id, {
            "last_sync_at": datetime.now(timezone.utc).isoformat(),
            "product_count": product_count,
        })

    def _update(self, connection_id: str, fields: dict) -> None:
        try:
            self.db.table(self.table).update(fields).eq("id", connection_id).execute()
        except Exception as e:
            logger.error("connection_update_failed", connection_id=connection_id, error=str(e))
            raise DatabaseError("update", str(e))

    # ===================
    # RESYNC
    # ===================

    def build_resync_request(self, connection_id: str) -> ImportRequest:
        """
        Rebuild an import request from a stored API connection.

        Raises:
            ConnectionNotFoundError: If connection doesn't exist
            ValidationError: If the connection is CSV-based
            InvalidFieldMappingError: If the stored mapping is incomplete
        """
        row = self.get_row(connection_id)

        if not row.get("api_url"):
            raise ValidationError(
                message="Only API connections can be resynced",
                code="RESYNC_NOT_SUPPORTED",
                details={"connection_id": connection_id}
            )

        mapping = [FieldMappingEntry(**entry) for entry in row.get("field_mapping") or []]
        missing = missing_required_targets(mapping)
        if missing:
            raise InvalidFieldMappingError(missing)

        return ImportRequest(
            shop=row["shop"],
            data_source=DataSource.API,
            api_credentials=ApiCredentials(api_url=row["api_url"], access_token=row.get("access_token")),
            field_mapping=mapping,
            attribute_filter=row.get("attribute_filter") or {},
            markup_config=row.get("markup_config") or {},
            connection_id=row["id"],
        )


_connection_service: Optional[ConnectionService] = None


def get_connection_service() -> ConnectionService:
    """Get or create connection service singleton."""
    global _connection_service
    if _connection_service is None:
        _connection_service = ConnectionService()
    return _connection_service
