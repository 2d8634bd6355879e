import logging
import re
from typing import Optional

from sqlalchemy.orm import Session

from backend.models import ImportConfiguration
from backend.services.exceptions import ConfigurationInvalid


logger = logging.getLogger(__name__)

_SPREADSHEET_ID = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")


def extract_spreadsheet_id(url: str) -> str:
    match = _SPREADSHEET_ID.search(url or "")
    if not match:
        raise ConfigurationInvalid("Invalid Google Sheet URL")
    return match.group(1)


def get_active_configuration(db: Session) -> Optional[ImportConfiguration]:
    return (
        db.query(ImportConfiguration)
        .filter(ImportConfiguration.is_active.is_(True))
        .order_by(ImportConfiguration.updated_at.desc())
        .first()
    )


def _deactivate_all(db: Session, except_id: Optional[str] = None) -> None:
    q = db.query(ImportConfiguration).filter(ImportConfiguration.is_active.is_(True))
    if except_id:
        q = q.filter(ImportConfiguration.id != except_id)
    q.update({ImportConfiguration.is_active: False}, synchronize_session="fetch")


def create_configuration(
    db: Session,
    google_sheet_url: str,
    sheet_name: str,
    poll_interval_minutes: int = 10,
    service_account_email: Optional[str] = None,
) -> ImportConfiguration:
    """Save a new sheet feed as the single active configuration."""

    spreadsheet_id = extract_spreadsheet_id(google_sheet_url)

    if not (sheet_name or "").strip():
        raise ConfigurationInvalid("Sheet name is required")
    if poll_interval_minutes < 1:
        raise ConfigurationInvalid("Poll interval must be at least 1 minute")

    _deactivate_all(db)

    config = ImportConfiguration(
        google_sheet_url=google_sheet_url,
        spreadsheet_id=spreadsheet_id,
        sheet_name=sheet_name.strip(),
        service_account_email=service_account_email,
        is_active=True,
        poll_interval_minutes=poll_interval_minutes,
    )
    db.add(config)
    db.commit()
    db.refresh(config)

    logger.info(f"Import configuration created | id={config.id} sheet={config.sheet_name}")
    return config


def update_configuration(
    db: Session,
    config_id: str,
    is_active: Optional[bool] = None,
    poll_interval_minutes: Optional[int] = None,
) -> Optional[ImportConfiguration]:
    config = db.get(ImportConfiguration, config_id)
    if config is None:
        return None

    if poll_interval_minutes is not None:
        if poll_interval_minutes < 1:
            raise ConfigurationInvalid("Poll interval must be at least 1 minute")
        config.poll_interval_minutes = poll_interval_minutes

    if is_active is not None:
        if is_active:
            _deactivate_all(db, except_id=config.id)
        config.is_active = is_active

    db.commit()
    db.refresh(config)

    logger.info(
        f"Import configuration updated | id={config.id} active={config.is_active} "
        f"interval={config.poll_interval_minutes}"
    )
    return config
