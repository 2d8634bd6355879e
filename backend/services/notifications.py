import logging
from typing import Dict, List, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models import (
    Interaction,
    Lead,
    Notification,
    SALES_ROLES,
    User,
    utcnow,
)


logger = logging.getLogger(__name__)


class NotificationFanout:
    """Creates in-app notifications for every sales user when leads arrive."""

    def __init__(self, db: Session):
        self.db = db

    def notify(self, user_id: str, lead_id: str, message: str,
               title: str = "New Lead Received", type_: str = "new_lead") -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            lead_id=lead_id,
            is_read=False,
        )
        self.db.add(notification)
        return notification

    def notify_new_leads(self, leads: Sequence[Lead]) -> int:
        """One notification per sales user per lead. Returns how many were created."""

        if not leads:
            return 0

        try:
            users = self.db.query(User).filter(User.role.in_(SALES_ROLES)).all()

            created = 0
            for user in users:
                for lead in leads:
                    origin = lead.platform or lead.source or "Google Sheet"
                    self.notify(
                        user.id,
                        lead.id,
                        f"New lead from {origin} - {lead.client_name}",
                    )
                    created += 1

            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"New lead notifications failed: {e}")
            return 0

        logger.info(f"Notifications sent | users={len(users)} leads={len(leads)}")
        return created


# ─────────────────────────────────────────────
# Follow-ups
# ─────────────────────────────────────────────

def _latest_per_lead(rows: List[Tuple[Interaction, Lead]]) -> List[Tuple[Interaction, Lead]]:
    # rows arrive newest interaction first
    seen: Dict[str, Tuple[Interaction, Lead]] = {}
    for interaction, lead in rows:
        seen.setdefault(lead.id, (interaction, lead))
    return list(seen.values())


def upcoming_follow_ups(db: Session, user_id: str) -> List[Tuple[Interaction, Lead]]:
    now = utcnow()

    rows = (
        db.query(Interaction, Lead)
        .join(Lead, Interaction.lead_id == Lead.id)
        .filter(
            Lead.is_deleted.is_(False),
            Lead.assigned_user_id == user_id,
            or_(
                Interaction.follow_up_at >= now,
                (Interaction.call_status == "follow_up_needed")
                & Interaction.follow_up_at.is_(None),
            ),
        )
        .order_by(Interaction.created_at.desc())
        .all()
    )

    result = _latest_per_lead(rows)
    result.sort(key=lambda pair: pair[0].follow_up_at or now)
    return result


def overdue_follow_ups(db: Session, user_id: str) -> List[Tuple[Interaction, Lead]]:
    now = utcnow()

    rows = (
        db.query(Interaction, Lead)
        .join(Lead, Interaction.lead_id == Lead.id)
        .filter(
            Lead.is_deleted.is_(False),
            Lead.assigned_user_id == user_id,
            Interaction.follow_up_at.is_not(None),
            Interaction.follow_up_at < now,
        )
        .order_by(Interaction.created_at.desc())
        .all()
    )

    result = _latest_per_lead(rows)
    result.sort(key=lambda pair: pair[0].follow_up_at)
    return result


def list_notifications(db: Session, user_id: str, unread_only: bool = False) -> List[Notification]:
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    return q.order_by(Notification.created_at.desc()).all()


def mark_read(db: Session, notification_id: str, user_id: str):
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if notification is None:
        return None

    notification.is_read = True
    db.commit()
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    count = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return count
