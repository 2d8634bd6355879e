import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.db import get_db
from backend.models import Interaction, User, utcnow
from backend.routes.leads import CallStatus, InterestLevel, get_visible_lead
from backend.services.auth import get_current_user


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/leads", tags=["Interactions"])


class InteractionCreate(BaseModel):
    interest_level: InterestLevel
    budget: float = 0
    call_status: CallStatus
    follow_up_at: Optional[datetime] = None
    notes: str = ""


def interaction_out(i: Interaction) -> dict:
    return {
        "id": i.id,
        "lead_id": i.lead_id,
        "interest_level": i.interest_level,
        "budget": i.budget,
        "call_status": i.call_status,
        "follow_up_at": i.follow_up_at,
        "notes": i.notes,
        "created_at": i.created_at,
        "created_by": i.created_by,
    }


@router.get("/{lead_id}/interactions")
def list_interactions(
    lead_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    get_visible_lead(db, lead_id, user)

    interactions = (
        db.query(Interaction)
        .filter(Interaction.lead_id == lead_id)
        .order_by(Interaction.created_at.desc())
        .all()
    )
    return [interaction_out(i) for i in interactions]


@router.post("/{lead_id}/interactions", status_code=201)
def create_interaction(
    lead_id: str,
    payload: InteractionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    lead = get_visible_lead(db, lead_id, user)

    follow_up_at = payload.follow_up_at
    if follow_up_at is not None and follow_up_at.tzinfo is not None:
        # stored as naive UTC
        follow_up_at = follow_up_at.astimezone(timezone.utc).replace(tzinfo=None)

    interaction = Interaction(
        lead_id=lead.id,
        interest_level=payload.interest_level,
        budget=payload.budget,
        call_status=payload.call_status,
        follow_up_at=follow_up_at,
        notes=payload.notes,
        created_by=user.id,
    )
    db.add(interaction)

    # The lead mirrors its latest call
    lead.interest_level = payload.interest_level
    lead.call_status = payload.call_status
    lead.updated_at = utcnow()

    db.commit()
    db.refresh(interaction)

    logger.info(f"Interaction logged | lead={lead.id} user={user.id} level={payload.interest_level}")
    return interaction_out(interaction)
