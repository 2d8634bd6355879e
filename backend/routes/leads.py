import logging
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from backend.db import get_db
from backend.models import Interaction, Lead, User, utcnow
from backend.services.auth import can_access_lead, get_current_user
from backend.services.repositories import SqlLeadRepository


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/leads", tags=["Leads"])


Ownership = Literal["self", "investment"]
Furnishing = Literal["unfurnished", "semi", "fully"]
InterestLevel = Literal["cold", "warm", "hot"]
CallStatus = Literal["not_received", "connected", "follow_up_needed", "not_interested"]


# ---------------- SCHEMA ----------------

class LeadCreate(BaseModel):
    client_name: str = Field(min_length=1)
    contact_number: str = Field(min_length=1)
    email: Optional[str] = None
    source: str = "Manual"
    interested_areas: List[str] = []
    interested_projects: List[str] = []
    ownership: Ownership = "self"
    furnishing: Furnishing = "unfurnished"


class LeadUpdate(BaseModel):
    client_name: Optional[str] = Field(default=None, min_length=1)
    contact_number: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    source: Optional[str] = None
    interested_areas: Optional[List[str]] = None
    interested_projects: Optional[List[str]] = None
    ownership: Optional[Ownership] = None
    furnishing: Optional[Furnishing] = None


def lead_out(lead: Lead) -> dict:
    return {
        "id": lead.id,
        "client_name": lead.client_name,
        "contact_number": lead.contact_number,
        "email": lead.email,
        "source": lead.source,
        "interested_areas": lead.interested_areas or [],
        "interested_projects": lead.interested_projects or [],
        "ownership": lead.ownership,
        "furnishing": lead.furnishing,
        "interest_level": lead.interest_level,
        "call_status": lead.call_status,
        "assigned_user_id": lead.assigned_user_id,
        "external_lead_id": lead.external_lead_id,
        "platform": lead.platform,
        "campaign_name": lead.campaign_name,
        "ad_name": lead.ad_name,
        "adset_name": lead.adset_name,
        "form_name": lead.form_name,
        "configuration_requested": lead.configuration_requested,
        "is_organic": lead.is_organic,
        "lead_created_time": lead.lead_created_time,
        "lead_status": lead.lead_status,
        "created_at": lead.created_at,
        "updated_at": lead.updated_at,
    }


def get_visible_lead(db: Session, lead_id: str, user: User) -> Lead:
    lead = db.get(Lead, lead_id)

    if not lead or lead.is_deleted:
        raise HTTPException(404, "Lead not found")

    if not can_access_lead(user, lead):
        raise HTTPException(403, "Access denied")

    return lead


def visible_leads_query(db: Session, user: User):
    q = db.query(Lead).filter(Lead.is_deleted.is_(False))
    if user.role == "agent":
        q = q.filter(Lead.assigned_user_id == user.id)
    return q


# ---------------- ROUTES ----------------

@router.get("")
def list_leads(
    search: Optional[str] = None,
    source: Optional[str] = None,
    ownership: Optional[Ownership] = None,
    furnishing: Optional[Furnishing] = None,
    interest_level: Optional[InterestLevel] = None,
    call_status: Optional[CallStatus] = None,
    project: Optional[str] = None,
    interested_area: Optional[str] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    modified_from: Optional[datetime] = None,
    modified_to: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):

    q = visible_leads_query(db, user)

    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Lead.client_name.ilike(term), Lead.contact_number.like(term)))

    if source:
        q = q.filter(Lead.source == source)
    if ownership:
        q = q.filter(Lead.ownership == ownership)
    if furnishing:
        q = q.filter(Lead.furnishing == furnishing)

    if created_from:
        q = q.filter(Lead.created_at >= created_from)
    if created_to:
        q = q.filter(Lead.created_at <= created_to)
    if modified_from:
        q = q.filter(Lead.updated_at >= modified_from)
    if modified_to:
        q = q.filter(Lead.updated_at <= modified_to)

    if interest_level or call_status:
        sub = db.query(Interaction.lead_id)
        if interest_level:
            sub = sub.filter(Interaction.interest_level == interest_level)
        if call_status:
            sub = sub.filter(Interaction.call_status == call_status)
        q = q.filter(Lead.id.in_(sub))

    leads = q.order_by(Lead.updated_at.desc()).all()

    # JSON list columns are filtered in Python to stay portable across databases
    if project:
        leads = [l for l in leads if project in (l.interested_projects or [])]
    if interested_area:
        leads = [l for l in leads if interested_area in (l.interested_areas or [])]

    logger.info(f"Leads listed | user={user.id} count={len(leads)}")

    return [lead_out(l) for l in leads]


@router.get("/filter-values")
def get_filter_values(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    sources, projects, areas = set(), set(), set()

    for lead in visible_leads_query(db, user).all():
        if lead.source:
            sources.add(lead.source)
        projects.update(lead.interested_projects or [])
        areas.update(lead.interested_areas or [])

    return {
        "sources": sorted(sources),
        "projects": sorted(projects),
        "areas": sorted(areas),
    }


@router.get("/{lead_id}")
def get_lead(
    lead_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return lead_out(get_visible_lead(db, lead_id, user))


@router.post("", status_code=201)
def create_lead(
    payload: LeadCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):

    repo = SqlLeadRepository(db)

    existing = repo.find_duplicate(email=payload.email, phone=payload.contact_number)
    if existing:
        raise HTTPException(409, f"Lead already exists: {existing.id}")

    lead = repo.create(
        **payload.model_dump(),
        assigned_user_id=user.id,
    )
    repo.commit()
    db.refresh(lead)

    logger.info(f"Lead created | lead={lead.id} user={user.id}")
    return lead_out(lead)


@router.patch("/{lead_id}")
def update_lead(
    lead_id: str,
    payload: LeadUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):

    lead = get_visible_lead(db, lead_id, user)
    updates = payload.model_dump(exclude_unset=True)

    if "email" in updates or "contact_number" in updates:
        existing = SqlLeadRepository(db).find_duplicate(
            email=updates.get("email"),
            phone=updates.get("contact_number"),
            exclude_id=lead.id,
        )
        if existing:
            raise HTTPException(409, f"Lead already exists: {existing.id}")

    for key, value in updates.items():
        setattr(lead, key, value)
    lead.updated_at = utcnow()

    db.commit()
    db.refresh(lead)

    return lead_out(lead)


@router.delete("/{lead_id}")
def delete_lead(
    lead_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):

    lead = get_visible_lead(db, lead_id, user)

    lead.is_deleted = True
    lead.updated_at = utcnow()
    db.commit()

    logger.info(f"Lead deleted | lead={lead.id} user={user.id}")
    return {"success": True}
