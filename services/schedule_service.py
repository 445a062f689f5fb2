"""
Scheduled connection resyncs.

An external cron calls run_due() every few minutes. Each active API
connection whose schedule has a slot passed since its last run is resynced
through the same path as a manual resync.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import structlog

from exceptions import AppError
from models.connection import (
    ConnectionResponse,
    ConnectionSchedule,
    ScheduleFrequency,
    ScheduledRunResponse,
    ScheduledRunResult,
)
from services.connection_service import (
    ConnectionService,
    get_connection_service,
    to_connection_response,
)
from services.import_service import ImportService, PreparedImport, get_import_service

logger = structlog.get_logger(__name__)

FREQUENCY_PERIODS = {
    ScheduleFrequency.HOURLY: timedelta(hours=1),
    ScheduleFrequency.DAILY: timedelta(days=1),
    ScheduleFrequency.WEEKLY: timedelta(days=7),
    ScheduleFrequency.MONTHLY: timedelta(days=30),
}


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def slot_step(schedule: ConnectionSchedule) -> timedelta:
    """Slots repeat hourly for hourly schedules, daily otherwise."""
    if schedule.frequency == ScheduleFrequency.HOURLY:
        return timedelta(hours=1)
    return timedelta(days=1)


def latest_slot(schedule: ConnectionSchedule, now: datetime) -> datetime:
    """
    Most recent HH:MM (or :MM for hourly) at or before now.

    - daily 09:00, now 10:30 → today 09:00
    - daily 09:00, now 08:00 → yesterday 09:00
    """
    now = _as_utc(now)
    if schedule.frequency == ScheduleFrequency.HOURLY:
        slot = now.replace(minute=schedule.minute, second=0, microsecond=0)
    else:
        slot = now.replace(hour=schedule.hour, minute=schedule.minute, second=0, microsecond=0)

    if slot > now:
        slot -= slot_step(schedule)
    return slot


def is_due(schedule: ConnectionSchedule, last_run_at: Optional[datetime], now: datetime) -> bool:
    """
    True when a slot has passed since the last run and the period has elapsed.

    A never-run connection is due at once. Weekly and monthly schedules
    fire on the first slot at least 6 or 29 days after the last run.
    """
    if not schedule.enabled:
        return False
    if last_run_at is None:
        return True

    last_run_at = _as_utc(last_run_at)
    slot = latest_slot(schedule, now)
    min_gap = FREQUENCY_PERIODS[schedule.frequency] - slot_step(schedule)

    return last_run_at < slot and slot - last_run_at >= min_gap


def last_run_at(connection: ConnectionResponse) -> Optional[datetime]:
    """Later of the last scheduled start and the last completed sync."""
    stamps = [_as_utc(s) for s in (connection.last_scheduled_at, connection.last_sync_at) if s]
    return max(stamps) if stamps else None


class ScheduleService:
    """
    Runs due connection schedules.

    Collaborators are injectable; defaults are the module singletons.
    """

    def __init__(
        self,
        connection_service: Optional[ConnectionService] = None,
        import_service: Optional[ImportService] = None
    ):
        self._connection_service = connection_service
        self._import_service = import_service

    @property
    def connection_service(self) -> ConnectionService:
        if self._connection_service is None:
            self._connection_service = get_connection_service()
        return self._connection_service

    @property
    def import_service(self) -> ImportService:
        if self._import_service is None:
            self._import_service = get_import_service()
        return self._import_service

    def run_due(
        self,
        now: Optional[datetime] = None,
        shop: Optional[str] = None
    ) -> tuple[ScheduledRunResponse, list[PreparedImport]]:
        """
        Start a resync for every due connection.

        A connection that cannot start (already running, incomplete mapping)
        is reported in the results and does not block the others. It is still
        stamped, so it waits for its next slot.

        Args:
            now: Tick time (defaults to the current UTC time)
            shop: Restrict to one shop

        Returns:
            (response, prepared imports to hand to ImportService.run_import)
        """
        now = _as_utc(now or datetime.now(timezone.utc))
        rows = self.connection_service.scheduled_rows(shop)

        results: list[ScheduledRunResult] = []
        prepared_runs: list[PreparedImport] = []

        for row in rows:
            connection = to_connection_response(row)
            if not is_due(connection.schedule, last_run_at(connection), now):
                continue

            try:
                self.connection_service.mark_scheduled(connection.id, now)
                request = self.connection_service.build_resync_request(connection.id)
                prepared = self.import_service.start_import(request)
            except AppError as e:
                logger.warning(
                    "scheduled_resync_not_started",
                    connection_id=connection.id,
                    shop=connection.shop,
                    code=e.code,
                    error=e.message
                )
                results.append(ScheduledRunResult(
                    connection_id=connection.id,
                    connection_name=connection.name,
                    success=False,
                    error=e.message,
                ))
                continue

            prepared_runs.append(prepared)
            results.append(ScheduledRunResult(
                connection_id=connection.id,
                connection_name=connection.name,
                success=True,
                session_id=prepared.session.id,
            ))

        logger.info(
            "scheduled_resyncs_checked",
            shop=shop,
            checked=len(rows),
            started=len(prepared_runs),
            failed=len(results) - len(prepared_runs)
        )

        response = ScheduledRunResponse(
            checked_count=len(rows),
            started_count=len(prepared_runs),
            results=results,
        )
        return response, prepared_runs


_schedule_service: Optional[ScheduleService] = None


def get_schedule_service() -> ScheduleService:
    """Get or create schedule service singleton."""
    global _schedule_service
    if _schedule_service is None:
        _schedule_service = ScheduleService()
    return _schedule_service
