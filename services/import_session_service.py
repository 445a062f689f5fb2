"""
Import session persistence and progress tracking.

The session row is the only progress state; pollers read it while the run
writes it.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID
import structlog

from config import get_supabase_client
from models.import_session import (
    ImportStatus,
    ImportSessionResponse,
    is_valid_import_status_transition,
)
from exceptions import (
    DatabaseError,
    ImportSessionNotFoundError,
    InvalidStatusTransitionError,
)

logger = structlog.get_logger(__name__)


def _is_uuid(value: str) -> bool:
    try:
        UUID(str(value))
        return True
    except ValueError:
        return False


class ImportSessionService:
    """import_sessions persistence."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "import_sessions"

    def create_session(
        self,
        shop: str,
        data_source: str,
        publish_mode: str
    ) -> ImportSessionResponse:
        """
        Create a pending session.

        Raises:
            DatabaseError: If the insert fails
        """
        data = {
            "shop": shop,
            "status": ImportStatus.PENDING.value,
            "total_count": 0,
            "imported_count": 0,
            "failed_count": 0,
            "data_source": data_source,
            "publish_mode": publish_mode,
        }

        try:
            result = self.db.table(self.table).insert(data).execute()
            session = ImportSessionResponse(**result.data[0])
            logger.info("import_session_created", session_id=session.id, shop=shop)
            return session

        except Exception as e:
            logger.error("import_session_create_failed", shop=shop, error=str(e))
            raise DatabaseError("insert", str(e))

    def get_session(self, session_id: str) -> Optional[ImportSessionResponse]:
        """Session snapshot, or None for an unknown (or malformed) id."""
        if not _is_uuid(session_id):
            return None

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", session_id)
                .execute()
            )
        except Exception as e:
            logger.error("import_session_get_failed", session_id=session_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return ImportSessionResponse(**result.data[0])

    def get_session_or_raise(self, session_id: str) -> ImportSessionResponse:
        """
        Raises:
            ImportSessionNotFoundError: If no such session
        """
        session = self.get_session(session_id)
        if session is None:
            raise ImportSessionNotFoundError(session_id)
        return session

    def update_session(self, session_id: str, fields: dict) -> None:
        try:
            self.db.table(self.table).update(fields).eq("id", session_id).execute()
        except Exception as e:
            logger.error("import_session_update_failed", session_id=session_id, error=str(e))
            raise DatabaseError("update", str(e))


class ImportProgress:
    """
    Count-driven progress of one run.

    pending → processing on begin(); processing → completed once every record
    has been attempted. Counters are persisted after each record.
    """

    def __init__(self, session_service: ImportSessionService, session_id: str):
        self.session_service = session_service
        self.session_id = session_id
        self.status = ImportStatus.PENDING
        self.total = 0
        self.imported = 0
        self.failed = 0
        self.current_label: Optional[str] = None

    @property
    def attempted(self) -> int:
        return self.imported + self.failed

    def _transition(self, new_status: ImportStatus) -> None:
        if not is_valid_import_status_transition(self.status, new_status):
            raise InvalidStatusTransitionError(self.status.value, new_status.value)
        self.status = new_status

    def begin(self, total: int) -> None:
        self.total = total

        if total == 0:
            self.finish()
            return

        self._transition(ImportStatus.PROCESSING)
        self.session_service.update_session(self.session_id, {
            "status": self.status.value,
            "total_count": total,
        })
        logger.info("import_processing", session_id=self.session_id, total=total)

    def record_success(self, label: str) -> None:
        self._record(label, succeeded=True)

    def record_failure(self, label: str) -> None:
        self._record(label, succeeded=False)

    def _record(self, label: str, succeeded: bool) -> None:
        if self.status != ImportStatus.PROCESSING or self.attempted >= self.total:
            raise InvalidStatusTransitionError(self.status.value, ImportStatus.PROCESSING.value)

        if succeeded:
            self.imported += 1
        else:
            self.failed += 1
        self.current_label = label

        # Counts are cumulative, so the next successful write catches up
        try:
            self.session_service.update_session(self.session_id, {
                "imported_count": self.imported,
                "failed_count": self.failed,
                "current_label": label,
            })
        except DatabaseError as e:
            logger.warning(
                "import_progress_persist_failed",
                session_id=self.session_id,
                attempted=self.attempted,
                error=e.message
            )

        if self.attempted == self.total:
            self.finish()

    def fail_source(self, message: str) -> None:
        """Complete an empty run whose source could not be read."""
        self.session_service.update_session(self.session_id, {"error_message": message})
        self.begin(0)

    def finish(self) -> None:
        if not is_valid_import_status_transition(self.status, ImportStatus.COMPLETED):
            raise InvalidStatusTransitionError(self.status.value, ImportStatus.COMPLETED.value)

        self.session_service.update_session(self.session_id, {
            "status": ImportStatus.COMPLETED.value,
            "total_count": self.total,
            "imported_count": self.imported,
            "failed_count": self.failed,
            "completed_at": datetime.now(timezone.utc).isoformat(),
        })
        self.status = ImportStatus.COMPLETED
        logger.info(
            "import_completed",
            session_id=self.session_id,
            total=self.total,
            imported=self.imported,
            failed=self.failed
        )

    def abandon(self, message: str) -> None:
        """
        Close a run that crashed midway.

        Completes the session with the counts reached so far and the error
        message. Store failures here are logged, not raised.
        """
        try:
            self.session_service.update_session(self.session_id, {"error_message": message})
            if self.status != ImportStatus.COMPLETED:
                self.finish()
        except DatabaseError as e:
            logger.error("import_progress_close_failed", session_id=self.session_id, error=e.message)


_import_session_service: Optional[ImportSessionService] = None


def get_import_session_service() -> ImportSessionService:
    """Get or create import session service singleton."""
    global _import_session_service
    if _import_session_service is None:
        _import_session_service = ImportSessionService()
    return _import_session_service
