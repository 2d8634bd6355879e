from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backend.db import get_db
from backend.models import User
from backend.services.auth import get_current_user
from backend.services.notifications import (
    list_notifications,
    mark_all_read,
    mark_read,
    overdue_follow_ups,
    upcoming_follow_ups,
)


router = APIRouter(prefix="/notifications", tags=["Notifications"])


def follow_up_out(interaction, lead) -> dict:
    return {
        "id": interaction.id,
        "lead_id": lead.id,
        "client_name": lead.client_name,
        "contact_number": lead.contact_number,
        "follow_up_at": interaction.follow_up_at,
        "notes": interaction.notes,
        "interest_level": interaction.interest_level,
    }


def notification_out(n) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "lead_id": n.lead_id,
        "is_read": n.is_read,
        "created_at": n.created_at,
    }


@router.get("")
def get_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [notification_out(n) for n in list_notifications(db, user.id, unread_only)]


@router.get("/upcoming")
def get_upcoming(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return [follow_up_out(i, l) for i, l in upcoming_follow_ups(db, user.id)]


@router.get("/overdue")
def get_overdue(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return [follow_up_out(i, l) for i, l in overdue_follow_ups(db, user.id)]


@router.post("/read-all")
def read_all(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"success": True, "updated": mark_all_read(db, user.id)}


@router.post("/{notification_id}/read")
def read_one(
    notification_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification = mark_read(db, notification_id, user.id)
    if notification is None:
        raise HTTPException(404, "Notification not found")
    return notification_out(notification)
