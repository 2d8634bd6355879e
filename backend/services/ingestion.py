"""
Lead ingestion engine.

One run: read the rows after the source's cursor, classify each row as
inserted / duplicate / invalid, insert the new leads, advance the cursor after
every row, write one import log entry, then fan out notifications.

Row-level problems never abort a run. The only fatal condition is an
unreachable source, which is logged as an ``error`` run with zero counts and
leaves the cursor where it was.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from backend.services.dedupe import DuplicateIndex
from backend.services.exceptions import (
    RowInsertError,
    RowValidationError,
    SourceUnreachable,
)
from backend.services.import_state import CursorStore, DEFAULT_LAST_ROW
from backend.services.lead_mapping import (
    CandidateRow,
    resolve_row,
    to_lead_payload,
    validate_candidate,
)
from backend.services.notifications import NotificationFanout
from backend.services.repositories import LeadRepository, LogRepository
from backend.services.row_sources import RawRow, RowSource


logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    INSERTING = "inserting"
    FINALIZING = "finalizing"
    FAILED = "failed"


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


# ---------------- ROW OUTCOMES ----------------

@dataclass(frozen=True)
class Inserted:
    row_number: int
    lead_id: str
    kind: str = "inserted"


@dataclass(frozen=True)
class Duplicate:
    row_number: int
    matched_on: str
    kind: str = "duplicate"


@dataclass(frozen=True)
class Invalid:
    row_number: int
    reason: str
    kind: str = "invalid"

    @property
    def message(self) -> str:
        return f"Row {self.row_number}: {self.reason}"


RowOutcome = Union[Inserted, Duplicate, Invalid]


@dataclass
class IngestionResult:
    source_id: str
    status: Optional[RunStatus] = None
    rows_scanned: int = 0
    new_rows_detected: int = 0
    leads_inserted: int = 0
    duplicates_skipped: int = 0
    errors: List[str] = field(default_factory=list)
    inserted_lead_ids: List[str] = field(default_factory=list)
    outcomes: List[RowOutcome] = field(default_factory=list)
    source_error: Optional[str] = None
    last_processed_row: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.status == RunStatus.SUCCESS

    def record(self, outcome: RowOutcome) -> None:
        self.outcomes.append(outcome)
        if isinstance(outcome, Inserted):
            self.leads_inserted += 1
            self.inserted_lead_ids.append(outcome.lead_id)
        elif isinstance(outcome, Duplicate):
            self.duplicates_skipped += 1
        else:
            self.errors.append(outcome.message)

    def finalize_status(self) -> RunStatus:
        if not self.errors:
            self.status = RunStatus.SUCCESS
        elif self.leads_inserted > 0:
            self.status = RunStatus.PARTIAL
        else:
            self.status = RunStatus.ERROR
        return self.status

    def as_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "success": self.success,
            "status": self.status.value if self.status else None,
            "rows_scanned": self.rows_scanned,
            "new_rows_detected": self.new_rows_detected,
            "leads_inserted": self.leads_inserted,
            "duplicates_skipped": self.duplicates_skipped,
            "errors": list(self.errors),
            "inserted_lead_ids": list(self.inserted_lead_ids),
        }


# ---------------- ENGINE ----------------

class IngestionEngine:

    def __init__(
        self,
        leads: LeadRepository,
        cursors: CursorStore,
        logs: LogRepository,
        notifier: Optional[NotificationFanout] = None,
    ):
        self.leads = leads
        self.cursors = cursors
        self.logs = logs
        self.notifier = notifier
        self.state = RunState.IDLE

    def _enter(self, state: RunState) -> None:
        logger.debug(f"Ingestion state | {self.state.value} -> {state.value}")
        self.state = state

    # -------------------------------------------------
    # MAIN ENTRY
    # -------------------------------------------------

    def run(
        self,
        source_id: str,
        source: RowSource,
        *,
        default_assignee_id: Optional[str] = None,
        source_label: str = "Google Sheet Import",
        poll_interval_minutes: Optional[int] = None,
        track_cursor: bool = True,
    ) -> IngestionResult:
        """
        Import the rows of ``source`` that come after the stored cursor.

        With ``track_cursor=False`` (manual uploads) every data row is read and
        the cursor is neither read nor written.
        """

        started = time.monotonic()
        result = IngestionResult(source_id=source_id)

        # ---------- FETCH ----------
        self._enter(RunState.FETCHING)

        last_row = (
            self.cursors.get_last_processed_row(source_id)
            if track_cursor else DEFAULT_LAST_ROW
        )
        result.last_processed_row = last_row

        try:
            rows = source.fetch_rows(last_row)
        except SourceUnreachable as e:
            return self._fail_unreachable(result, e)

        result.rows_scanned = len(rows)
        result.new_rows_detected = len(rows)

        logger.info(
            f"Import run | source={source_id} last_row={last_row} new_rows={len(rows)}"
        )

        # ---------- CLASSIFY / INSERT ----------
        self._enter(RunState.CLASSIFYING)
        index = DuplicateIndex.build(self.leads.list_active())
        logger.debug(f"Duplicate index | source={source_id} leads={len(index)}")

        inserted_leads = []

        for offset, raw in enumerate(rows):
            row_number = last_row + offset + 1

            candidate, outcome, lead = self._process_row(
                raw,
                row_number,
                index,
                default_assignee_id=default_assignee_id,
                source_label=source_label,
            )
            result.record(outcome)
            if lead is not None:
                inserted_leads.append(lead)

            if track_cursor:
                self.cursors.advance(
                    source_id,
                    row_number,
                    external_id=candidate.external_id if candidate else None,
                    source_timestamp=candidate.lead_created_time if candidate else None,
                    poll_interval_minutes=poll_interval_minutes,
                )
            result.last_processed_row = row_number

        # ---------- FINALIZE ----------
        self._enter(RunState.FINALIZING)
        status = result.finalize_status()

        self.logs.append(
            source_id,
            status.value,
            rows_scanned=result.rows_scanned,
            new_rows_detected=result.new_rows_detected,
            leads_inserted=result.leads_inserted,
            duplicates_skipped=result.duplicates_skipped,
            errors=result.errors,
        )

        if inserted_leads and self.notifier is not None:
            self.notifier.notify_new_leads(inserted_leads)

        self._enter(RunState.IDLE)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Import complete | source={source_id} status={status.value} "
            f"inserted={result.leads_inserted} duplicates={result.duplicates_skipped} "
            f"errors={len(result.errors)} duration_ms={duration_ms}"
        )
        return result

    # -------------------------------------------------
    # ROW
    # -------------------------------------------------

    def _process_row(
        self,
        raw: RawRow,
        row_number: int,
        index: DuplicateIndex,
        *,
        default_assignee_id: Optional[str],
        source_label: str,
    ):
        candidate: Optional[CandidateRow] = None

        try:
            candidate = resolve_row(raw)
            validate_candidate(candidate)

            matched_on = index.match(
                external_id=candidate.external_id,
                email=candidate.email,
                phone=candidate.phone,
            )
            if matched_on:
                logger.info(f"Duplicate row | row={row_number} matched_on={matched_on}")
                return candidate, Duplicate(row_number, matched_on), None

            self._enter(RunState.INSERTING)
            assignee = self._resolve_assignee(candidate, default_assignee_id)
            payload = to_lead_payload(
                candidate,
                assigned_user_id=assignee,
                source_label=source_label,
            )
            lead = self._insert(payload)
            index.add(lead)

            logger.info(f"Lead created | row={row_number} lead={lead.id}")
            return candidate, Inserted(row_number, lead.id), lead

        except (RowValidationError, RowInsertError) as e:
            logger.warning(f"Row rejected | row={row_number} reason={e}")
            return candidate, Invalid(row_number, str(e)), None

        except Exception as e:
            # Any other failure stays contained to this row
            logger.exception(f"Row failed | row={row_number}")
            self.leads.rollback()
            return candidate, Invalid(row_number, str(e) or e.__class__.__name__), None

        finally:
            self.state = RunState.CLASSIFYING

    def _resolve_assignee(self, candidate: CandidateRow, default_assignee_id: Optional[str]) -> str:
        if candidate.assigned_user_id and self.leads.get_user(candidate.assigned_user_id):
            return candidate.assigned_user_id

        if candidate.assigned_user_id:
            logger.warning(
                f"Unknown assignee in row, using default | assigned_user_id={candidate.assigned_user_id}"
            )

        if not default_assignee_id:
            raise RowValidationError("No user available to assign the lead to")

        return default_assignee_id

    def _insert(self, payload: dict):
        try:
            lead = self.leads.create(**payload)
            self.leads.commit()
            return lead
        except SQLAlchemyError as e:
            self.leads.rollback()
            raise RowInsertError(f"Could not create lead: {e.__class__.__name__}: {e}") from e

    # -------------------------------------------------
    # FAILURE
    # -------------------------------------------------

    def _fail_unreachable(self, result: IngestionResult, error: SourceUnreachable) -> IngestionResult:
        self._enter(RunState.FAILED)

        logger.error(f"Import source unreachable | source={result.source_id} error={error}")

        result.status = RunStatus.ERROR
        result.source_error = str(error)
        result.errors.append(str(error))

        self.logs.append(
            result.source_id,
            RunStatus.ERROR.value,
            rows_scanned=0,
            new_rows_detected=0,
            leads_inserted=0,
            duplicates_skipped=0,
            errors=[str(error)],
        )
        return result


def pick_default_assignee(users) -> Optional[str]:
    """First agent, falling back to the first user, for unattended imports."""

    users = list(users)
    for user in users:
        if user.role == "agent":
            return user.id
    return users[0].id if users else None
