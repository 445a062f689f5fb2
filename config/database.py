"""
Supabase client for the persistence services.

The client is created once and shared; the service-role key is preferred
so background import runs are not subject to row-level security.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings
from exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)

# Tables counted by the health check
HEALTH_TABLES = ("imported_products", "import_sessions", "supplier_connections")


@lru_cache()
def get_supabase_client() -> Client:
    """
    Cached Supabase client. reset_connection() drops it.

    Raises:
        ExternalServiceError: If the client cannot be created (503)
    """
    key_kind = "service" if settings.supabase_service_key else "anon"

    try:
        client = create_client(
            settings.supabase_url,
            settings.supabase_service_key or settings.supabase_key
        )
    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            key_kind=key_kind,
            error=str(e),
            error_type=type(e).__name__
        )
        raise ExternalServiceError("supabase", f"Failed to connect to Supabase: {e}") from e

    logger.info("supabase_connected", key_kind=key_kind)
    return client


def check_connection() -> dict:
    """
    Row counts of the import tables, for /health.

    Never raises; a failure is reported as status "unhealthy".
    """
    try:
        client = get_supabase_client()
        counts = {
            f"{table}_count": client.table(table).select("id", count="exact").execute().count
            for table in HEALTH_TABLES
        }
    except Exception as e:
        logger.warning("database_health_check_failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}

    return {"status": "healthy", **counts}


def reset_connection() -> None:
    """Drop the cached client so the next call reconnects."""
    get_supabase_client.cache_clear()
    logger.info("database_connection_reset")
