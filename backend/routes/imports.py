import logging
from typing import Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.config import UPLOAD_SOURCE_ID
from backend.db import get_db
from backend.models import ImportConfiguration, ImportLog, ImportState, User
from backend.services.auth import get_current_user, require_admin
from backend.services.exceptions import ConfigurationInvalid
from backend.services.import_config import (
    create_configuration,
    get_active_configuration,
    update_configuration,
)
from backend.services.import_state import CursorStore
from backend.services.ingestion import IngestionEngine
from backend.services.notifications import NotificationFanout
from backend.services.repositories import SqlLeadRepository, SqlLogRepository
from backend.services.row_sources import UploadedSpreadsheetSource
from backend.services.scheduler import LeadImportScheduler


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/import", tags=["Import"])


UPLOAD_SOURCE_LABELS = {
    "cold_calls": "Cold Calls",
    "marketing_campaign": "Marketing Campaign",
    "website": "Website",
}


# ---------------- SCHEMAS ----------------

class ConfigurationCreate(BaseModel):
    google_sheet_url: str
    sheet_name: str
    poll_interval_minutes: int = Field(default=10, ge=1)
    service_account_email: Optional[str] = None


class ConfigurationUpdate(BaseModel):
    is_active: Optional[bool] = None
    poll_interval_minutes: Optional[int] = Field(default=None, ge=1)


def configuration_out(c: ImportConfiguration) -> dict:
    return {
        "id": c.id,
        "google_sheet_url": c.google_sheet_url,
        "spreadsheet_id": c.spreadsheet_id,
        "sheet_name": c.sheet_name,
        "service_account_email": c.service_account_email,
        "is_active": c.is_active,
        "poll_interval_minutes": c.poll_interval_minutes,
        "created_at": c.created_at,
        "updated_at": c.updated_at,
    }


def log_out(entry: ImportLog) -> dict:
    return {
        "id": entry.id,
        "configuration_id": entry.configuration_id,
        "run_at": entry.run_at,
        "status": entry.status,
        "rows_scanned": entry.rows_scanned,
        "new_rows_detected": entry.new_rows_detected,
        "leads_inserted": entry.leads_inserted,
        "duplicates_skipped": entry.duplicates_skipped,
        "errors": entry.errors or [],
    }


def state_out(state: ImportState) -> dict:
    return {
        "configuration_id": state.configuration_id,
        "last_processed_row": state.last_processed_row,
        "last_processed_id": state.last_processed_id,
        "last_processed_time": state.last_processed_time,
        "last_run_at": state.last_run_at,
        "next_run_at": state.next_run_at,
    }


def get_scheduler(request: Request) -> LeadImportScheduler:
    return request.app.state.scheduler


# ---------------- CONFIGURATION ----------------

@router.get("/configuration")
def read_configuration(db: Session = Depends(get_db), admin: User = Depends(require_admin)):

    config = get_active_configuration(db)
    return configuration_out(config) if config else None


@router.post("/configuration", status_code=201)
def save_configuration(
    data: ConfigurationCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        config = create_configuration(
            db,
            data.google_sheet_url,
            data.sheet_name,
            poll_interval_minutes=data.poll_interval_minutes,
            service_account_email=data.service_account_email,
        )
    except ConfigurationInvalid as e:
        raise HTTPException(400, str(e))

    return configuration_out(config)


@router.patch("/configuration/{config_id}")
def patch_configuration(
    config_id: str,
    data: ConfigurationUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        config = update_configuration(
            db,
            config_id,
            is_active=data.is_active,
            poll_interval_minutes=data.poll_interval_minutes,
        )
    except ConfigurationInvalid as e:
        raise HTTPException(400, str(e))

    if config is None:
        raise HTTPException(404, "Configuration not found")

    return configuration_out(config)


# ---------------- HISTORY ----------------

@router.get("/logs/{source_id}")
def read_logs(
    source_id: str,
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return [log_out(e) for e in SqlLogRepository(db).recent(source_id, limit)]


@router.get("/state/{source_id}")
def read_state(
    source_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    state = CursorStore(db).get_state(source_id)
    if state is None:
        raise HTTPException(404, "No import has run for this source")
    return state_out(state)


# ---------------- RUNS ----------------

@router.post("/trigger")
def trigger_import(
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    scheduler: LeadImportScheduler = Depends(get_scheduler),
):
    if scheduler.is_running:
        return {"success": False, "message": "Import already running"}

    background_tasks.add_task(scheduler.run_import)

    logger.info(f"Manual import triggered | user={admin.id}")
    return {"success": True, "message": "Import triggered"}


@router.post("/upload")
def upload_leads(
    file: UploadFile = File(...),
    source: str = Form("manual"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    scheduler: LeadImportScheduler = Depends(get_scheduler),
):
    content = file.file.read()

    row_source = UploadedSpreadsheetSource(content, file.filename or "upload.xlsx")

    label = UPLOAD_SOURCE_LABELS.get(source, "Manual Import")

    with scheduler.exclusive_run() as acquired:
        if not acquired:
            raise HTTPException(409, "Import already running")

        engine = IngestionEngine(
            SqlLeadRepository(db),
            CursorStore(db),
            SqlLogRepository(db),
            NotificationFanout(db),
        )
        result = engine.run(
            UPLOAD_SOURCE_ID,
            row_source,
            default_assignee_id=user.id,
            source_label=label,
            track_cursor=False,
        )

    if result.source_error:
        raise HTTPException(400, result.source_error)

    logger.info(
        f"Upload import | user={user.id} file={file.filename} "
        f"inserted={result.leads_inserted} duplicates={result.duplicates_skipped}"
    )
    return result.as_dict()
