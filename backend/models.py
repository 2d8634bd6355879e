import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship, validates

from backend.services.dedupe import normalize_phone


Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


USER_ROLES = ("admin", "manager", "agent")
SALES_ROLES = ("agent", "manager", "admin")

OWNERSHIP_CHOICES = ("self", "investment")
FURNISHING_CHOICES = ("unfurnished", "semi", "fully")
INTEREST_LEVELS = ("cold", "warm", "hot")
CALL_STATUSES = ("not_received", "connected", "follow_up_needed", "not_interested")


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default="agent")

    created_at = Column(DateTime, default=utcnow, nullable=False)

    leads = relationship("Lead", back_populates="assigned_user")


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String, primary_key=True, default=new_id)
    external_lead_id = Column(String, index=True)

    client_name = Column(String, nullable=False)
    contact_number = Column(String, nullable=False)
    normalized_phone = Column(String, index=True)
    email = Column(String, index=True)
    source = Column(String, nullable=False, default="Manual")

    interested_areas = Column(JSON, nullable=False, default=list)
    interested_projects = Column(JSON, nullable=False, default=list)

    ownership = Column(String, nullable=False, default="self")
    furnishing = Column(String, nullable=False, default="unfurnished")

    # Mirrors the latest interaction
    interest_level = Column(String)
    call_status = Column(String)

    assigned_user_id = Column(String, ForeignKey("users.id"), nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    # Provenance (ad platforms / sheet feeds)
    platform = Column(String)
    campaign_name = Column(String)
    ad_name = Column(String)
    adset_name = Column(String)
    form_name = Column(String)
    configuration_requested = Column(String)
    is_organic = Column(Boolean)
    lead_created_time = Column(DateTime)
    lead_status = Column(String)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    assigned_user = relationship("User", back_populates="leads")
    interactions = relationship(
        "Interaction",
        back_populates="lead",
        order_by="Interaction.created_at.desc()",
    )

    @validates("contact_number")
    def _sync_normalized_phone(self, key, value):
        self.normalized_phone = normalize_phone(value) or None
        return value


class Interaction(Base):
    __tablename__ = "interactions"

    id = Column(String, primary_key=True, default=new_id)
    lead_id = Column(String, ForeignKey("leads.id"), nullable=False, index=True)

    interest_level = Column(String, nullable=False)
    budget = Column(Float, nullable=False, default=0)
    call_status = Column(String, nullable=False)
    follow_up_at = Column(DateTime)
    notes = Column(Text, nullable=False, default="")

    created_at = Column(DateTime, default=utcnow, nullable=False)
    created_by = Column(String, ForeignKey("users.id"), nullable=False)

    lead = relationship("Lead", back_populates="interactions")


class ImportConfiguration(Base):
    __tablename__ = "import_configurations"

    id = Column(String, primary_key=True, default=new_id)
    google_sheet_url = Column(String, nullable=False)
    spreadsheet_id = Column(String, nullable=False)
    sheet_name = Column(String, nullable=False)
    service_account_email = Column(String)

    is_active = Column(Boolean, nullable=False, default=True)
    poll_interval_minutes = Column(Integer, nullable=False, default=10)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ImportState(Base):
    __tablename__ = "import_states"

    id = Column(String, primary_key=True, default=new_id)
    configuration_id = Column(String, unique=True, nullable=False)

    last_processed_row = Column(Integer, nullable=False, default=1)
    last_processed_id = Column(String)
    last_processed_time = Column(DateTime)

    last_run_at = Column(DateTime, nullable=False)
    next_run_at = Column(DateTime, nullable=False)


class ImportLog(Base):
    __tablename__ = "import_logs"

    id = Column(String, primary_key=True, default=new_id)
    configuration_id = Column(String, nullable=False, index=True)
    run_at = Column(DateTime, default=utcnow, nullable=False)
    status = Column(String, nullable=False)

    rows_scanned = Column(Integer, nullable=False, default=0)
    new_rows_detected = Column(Integer, nullable=False, default=0)
    leads_inserted = Column(Integer, nullable=False, default=0)
    duplicates_skipped = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=False, default=list)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    lead_id = Column(String, ForeignKey("leads.id"))
    is_read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
