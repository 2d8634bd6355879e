"""
Storage seams for the import pipeline.

The ingestion engine talks to these protocols only; the SQLAlchemy versions
below are what the API and scheduler inject.
"""

import logging
from typing import List, Optional, Protocol

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from backend.models import ImportLog, Lead, User, utcnow
from backend.services.dedupe import normalize_email, normalize_external_id, normalize_phone


logger = logging.getLogger(__name__)


class LeadRepository(Protocol):

    def list_active(self) -> List[Lead]: ...

    def create(self, **fields) -> Lead: ...

    def get_user(self, user_id: str) -> Optional[User]: ...

    def list_users(self) -> List[User]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class LogRepository(Protocol):

    def append(self, source_id: str, status: str, **counts) -> ImportLog: ...

    def recent(self, source_id: str, limit: int = 50) -> List[ImportLog]: ...


class SqlLeadRepository:

    def __init__(self, db: Session):
        self.db = db

    def list_active(self) -> List[Lead]:
        return self.db.query(Lead).filter(Lead.is_deleted.is_(False)).all()

    def create(self, **fields) -> Lead:
        lead = Lead(**fields)
        self.db.add(lead)
        self.db.flush()
        return lead

    def get_user(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self.db.get(User, user_id)

    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at, User.id).all()

    def find_duplicate(
        self,
        external_id: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        exclude_id: Optional[str] = None,
    ) -> Optional[Lead]:
        """Single-lead identity check used outside import runs."""

        clauses = []

        ext = normalize_external_id(external_id)
        if ext:
            clauses.append(Lead.external_lead_id == ext)

        mail = normalize_email(email)
        if mail:
            clauses.append(func.lower(Lead.email) == mail)

        ph = normalize_phone(phone)
        if ph:
            clauses.append(Lead.normalized_phone == ph)

        if not clauses:
            return None

        q = self.db.query(Lead).filter(Lead.is_deleted.is_(False), or_(*clauses))
        if exclude_id:
            q = q.filter(Lead.id != exclude_id)
        return q.first()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()


class SqlLogRepository:
    """Append-only: there is no update or delete path for import logs."""

    def __init__(self, db: Session):
        self.db = db

    def append(self, source_id: str, status: str, **counts) -> ImportLog:
        entry = ImportLog(
            configuration_id=source_id,
            run_at=counts.pop("run_at", None) or utcnow(),
            status=status,
            rows_scanned=counts.get("rows_scanned", 0),
            new_rows_detected=counts.get("new_rows_detected", 0),
            leads_inserted=counts.get("leads_inserted", 0),
            duplicates_skipped=counts.get("duplicates_skipped", 0),
            errors=list(counts.get("errors") or []),
        )
        self.db.add(entry)
        self.db.commit()

        logger.info(
            f"Import log | source={source_id} status={status} "
            f"inserted={entry.leads_inserted} duplicates={entry.duplicates_skipped} "
            f"errors={len(entry.errors)}"
        )
        return entry

    def recent(self, source_id: str, limit: int = 50) -> List[ImportLog]:
        return (
            self.db.query(ImportLog)
            .filter(ImportLog.configuration_id == source_id)
            .order_by(ImportLog.run_at.desc(), ImportLog.id.desc())
            .limit(limit)
            .all()
        )
