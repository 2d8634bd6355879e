import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.config import (
    EXCEL_FILE_PATH,
    EXCEL_SOURCE_ID,
    GOOGLE_SERVICE_ACCOUNT_CREDENTIALS,
    GOOGLE_SHEETS_CRED,
    IMPORT_POLL_INTERVAL_MINUTES,
)
from backend.db import SessionLocal
from backend.services.import_config import get_active_configuration
from backend.services.import_state import CursorStore
from backend.services.ingestion import (
    IngestionEngine,
    IngestionResult,
    RunStatus,
    pick_default_assignee,
)
from backend.services.notifications import NotificationFanout
from backend.services.repositories import SqlLeadRepository, SqlLogRepository
from backend.services.row_sources import ExcelFileSource, GoogleSheetSource, RowSource


logger = logging.getLogger(__name__)


@dataclass
class ImportPlan:
    source_id: str
    source: RowSource
    poll_interval_minutes: int
    source_label: str


def resolve_import_plan(db: Session, excel_file_path: Optional[str] = EXCEL_FILE_PATH) -> Optional[ImportPlan]:
    """Which feed an unattended run should read, or None when nothing is configured."""

    if excel_file_path:
        return ImportPlan(
            source_id=EXCEL_SOURCE_ID,
            source=ExcelFileSource(excel_file_path),
            poll_interval_minutes=IMPORT_POLL_INTERVAL_MINUTES,
            source_label="Excel Import",
        )

    config = get_active_configuration(db)
    if config is None:
        return None

    return ImportPlan(
        source_id=config.id,
        source=GoogleSheetSource(
            config.spreadsheet_id,
            config.sheet_name,
            credentials_json=GOOGLE_SERVICE_ACCOUNT_CREDENTIALS,
            credentials_file=GOOGLE_SHEETS_CRED or None,
        ),
        poll_interval_minutes=config.poll_interval_minutes,
        source_label="Google Sheet Import",
    )


class LeadImportScheduler:
    """
    Fixed-interval lead import with at most one run in flight.

    Timer ticks and manual triggers both go through ``run_import``; whichever
    loses the race for the run lock returns immediately without touching
    anything.
    """

    JOB_ID = "lead-import"

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_minutes: int = IMPORT_POLL_INTERVAL_MINUTES,
        plan_resolver: Callable[[Session], Optional[ImportPlan]] = resolve_import_plan,
    ):
        self.session_factory = session_factory
        self.interval_minutes = interval_minutes
        self.plan_resolver = plan_resolver

        self._scheduler: Optional[BackgroundScheduler] = None
        self._run_lock = threading.Lock()
        self.last_result: Optional[IngestionResult] = None

    # ---------------- LIFECYCLE ----------------

    @property
    def started(self) -> bool:
        return self._scheduler is not None

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def start(self) -> None:
        if self._scheduler is not None:
            logger.info("Import scheduler already started")
            return

        scheduler = BackgroundScheduler(daemon=True)
        scheduler.add_job(
            self.run_import,
            IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(f"Import scheduler started | interval_minutes={self.interval_minutes}")

    def stop(self) -> None:
        if self._scheduler is None:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Import scheduler stopped")

    # ---------------- RUN ----------------

    @contextmanager
    def exclusive_run(self):
        """Yields True when the caller holds the run lock, False if a run is in flight."""
        acquired = self._run_lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._run_lock.release()

    def run_import(self) -> Optional[IngestionResult]:
        with self.exclusive_run() as acquired:
            if not acquired:
                logger.info("Import already running, skipping")
                return None
            return self._run()

    def _run(self) -> Optional[IngestionResult]:
        started = time.monotonic()
        db = self.session_factory()
        plan = None

        try:
            plan = self.plan_resolver(db)
            if plan is None:
                logger.info("No active import configuration")
                return None

            leads = SqlLeadRepository(db)
            engine = IngestionEngine(
                leads,
                CursorStore(db, poll_interval_minutes=plan.poll_interval_minutes),
                SqlLogRepository(db),
                NotificationFanout(db),
            )

            result = engine.run(
                plan.source_id,
                plan.source,
                default_assignee_id=pick_default_assignee(leads.list_users()),
                source_label=plan.source_label,
                poll_interval_minutes=plan.poll_interval_minutes,
            )
            self.last_result = result

            logger.info(
                f"Scheduled import finished | source={plan.source_id} "
                f"status={result.status.value} duration_ms={int((time.monotonic() - started) * 1000)}"
            )
            return result

        except Exception as e:
            # Never let a failed run kill the timer thread
            logger.exception("Fatal error during import")
            db.rollback()
            if plan is not None:
                self._log_fatal(db, plan.source_id, e)
            return None

        finally:
            db.close()

    def _log_fatal(self, db: Session, source_id: str, error: Exception) -> None:
        try:
            SqlLogRepository(db).append(
                source_id,
                RunStatus.ERROR.value,
                errors=[str(error) or error.__class__.__name__],
            )
        except SQLAlchemyError as log_error:
            db.rollback()
            logger.error(f"Failed to record import failure: {log_error}")
