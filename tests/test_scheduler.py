import threading

import pandas as pd

from backend.models import ImportConfiguration, ImportLog, Lead
from backend.services.import_config import create_configuration
from backend.services.row_sources import ExcelFileSource, GoogleSheetSource, RowSource
from backend.services.scheduler import ImportPlan, LeadImportScheduler, resolve_import_plan

from conftest import ListSource


class BlockingSource(RowSource):
    """Holds fetch_rows open until the test releases it."""

    def __init__(self, rows):
        self.rows = rows
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_rows(self, start_row):
        self.entered.set()
        self.release.wait(timeout=5)
        return self.rows[start_row - 1:]


class ExplodingSource(RowSource):

    def fetch_rows(self, start_row):
        raise KeyError("worksheet vanished")


def plan_for(source, source_id="sheet-1"):
    plan = ImportPlan(source_id=source_id, source=source, poll_interval_minutes=5, source_label="Google Sheet Import")
    return lambda db: plan


def test_run_without_configuration_is_a_noop(session_factory, db, users):
    scheduler = LeadImportScheduler(session_factory=session_factory, plan_resolver=lambda db: None)

    assert scheduler.run_import() is None
    assert db.query(ImportLog).count() == 0


def test_run_imports_with_default_assignee(session_factory, db, agent):
    source = ListSource([{"name": "Alice", "phone": "5550101"}])
    scheduler = LeadImportScheduler(session_factory=session_factory, plan_resolver=plan_for(source))

    result = scheduler.run_import()

    assert result.leads_inserted == 1
    assert scheduler.last_result is result
    assert db.query(Lead).one().assigned_user_id == agent.id
    assert not scheduler.is_running


def test_overlapping_runs_are_skipped(session_factory, db, users):
    source = BlockingSource([{"name": "Alice", "phone": "5550101"}])
    scheduler = LeadImportScheduler(session_factory=session_factory, plan_resolver=plan_for(source))

    worker = threading.Thread(target=scheduler.run_import)
    worker.start()
    try:
        assert source.entered.wait(timeout=5)
        assert scheduler.is_running

        # A second tick while the first run is in flight does nothing
        assert scheduler.run_import() is None
    finally:
        source.release.set()
        worker.join(timeout=5)

    assert not scheduler.is_running
    assert db.query(Lead).count() == 1
    assert db.query(ImportLog).count() == 1


def test_unexpected_error_is_logged_and_swallowed(session_factory, db, users):
    scheduler = LeadImportScheduler(session_factory=session_factory, plan_resolver=plan_for(ExplodingSource()))

    assert scheduler.run_import() is None

    [entry] = db.query(ImportLog).all()
    assert entry.status == "error"
    assert entry.configuration_id == "sheet-1"
    assert "worksheet vanished" in entry.errors[0]
    assert not scheduler.is_running


def test_start_and_stop_are_idempotent(session_factory):
    scheduler = LeadImportScheduler(session_factory=session_factory, interval_minutes=60, plan_resolver=lambda db: None)

    scheduler.start()
    scheduler.start()
    try:
        assert scheduler.started
        job = scheduler._scheduler.get_job(LeadImportScheduler.JOB_ID)
        assert job is not None
        assert job.max_instances == 1
    finally:
        scheduler.stop()
        scheduler.stop()

    assert not scheduler.started


def test_excel_path_takes_precedence(db, tmp_path):
    path = tmp_path / "leads.xlsx"
    pd.DataFrame([["Alice", "5550101"]], columns=["name", "phone"]).to_excel(path, index=False)
    create_configuration(db, "https://docs.google.com/spreadsheets/d/abc123/edit", "Leads")

    plan = resolve_import_plan(db, excel_file_path=str(path))

    assert plan.source_id == "excel-import-config"
    assert isinstance(plan.source, ExcelFileSource)


def test_active_sheet_configuration_is_used(db):
    config = create_configuration(
        db, "https://docs.google.com/spreadsheets/d/abc123/edit", "Leads", poll_interval_minutes=3,
    )

    plan = resolve_import_plan(db, excel_file_path=None)

    assert plan.source_id == config.id
    assert plan.poll_interval_minutes == 3
    assert isinstance(plan.source, GoogleSheetSource)
    assert plan.source.spreadsheet_id == "abc123"
    assert plan.source.sheet_name == "Leads"


def test_no_active_configuration(db):
    config = create_configuration(db, "https://docs.google.com/spreadsheets/d/abc123/edit", "Leads")
    config.is_active = False
    db.commit()

    assert db.query(ImportConfiguration).count() == 1
    assert resolve_import_plan(db, excel_file_path=None) is None
