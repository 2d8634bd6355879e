import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from backend.config import IMPORT_POLL_INTERVAL_MINUTES
from backend.models import ImportState, utcnow
from backend.services.exceptions import CursorRegressionError


logger = logging.getLogger(__name__)

# Row 1 is the header, so "nothing processed yet" means start at row 2
DEFAULT_LAST_ROW = 1


class CursorStore:
    """Per-source import bookmark, advanced once per processed row."""

    def __init__(self, db: Session, poll_interval_minutes: int = IMPORT_POLL_INTERVAL_MINUTES):
        self.db = db
        self.poll_interval_minutes = poll_interval_minutes

    def get_state(self, source_id: str) -> Optional[ImportState]:
        return (
            self.db.query(ImportState)
            .filter(ImportState.configuration_id == source_id)
            .first()
        )

    def get_last_processed_row(self, source_id: str) -> int:
        state = self.get_state(source_id)
        if state is None or not state.last_processed_row:
            return DEFAULT_LAST_ROW
        return state.last_processed_row

    def get_next_run_time(self, source_id: str) -> Optional[datetime]:
        state = self.get_state(source_id)
        return state.next_run_at if state else None

    def advance(
        self,
        source_id: str,
        row: int,
        external_id: Optional[str] = None,
        source_timestamp: Optional[datetime] = None,
        poll_interval_minutes: Optional[int] = None,
        commit: bool = True,
    ) -> ImportState:
        state = self.get_state(source_id)
        current = state.last_processed_row if state else DEFAULT_LAST_ROW

        if row < current:
            raise CursorRegressionError(
                f"Cursor for {source_id} cannot move back from row {current} to {row}"
            )

        now = utcnow()
        interval = poll_interval_minutes or self.poll_interval_minutes

        if state is None:
            state = ImportState(configuration_id=source_id)
            self.db.add(state)

        state.last_processed_row = row
        if external_id:
            state.last_processed_id = external_id
        if source_timestamp:
            state.last_processed_time = source_timestamp
        state.last_run_at = now
        state.next_run_at = now + timedelta(minutes=interval)

        if commit:
            self.db.commit()
        else:
            self.db.flush()

        logger.debug(f"Cursor advanced | source={source_id} row={row}")
        return state
