from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from backend.models import INTEREST_LEVELS, Interaction, Lead, User, utcnow


_LEVEL_RANK = {level: rank for rank, level in enumerate(INTEREST_LEVELS)}


def latest_interest_level(interactions: Iterable[Interaction]) -> Optional[str]:
    """
    Interest level of the most recent interaction.

    Interactions logged at the same instant are tie-broken towards the higher
    level (hot > warm > cold).
    """

    best = None
    for i in interactions:
        key = (i.created_at, _LEVEL_RANK.get(i.interest_level, -1))
        if best is None or key > best[0]:
            best = (key, i.interest_level)
    return best[1] if best else None


def dashboard_stats(db: Session, user: User, now: Optional[datetime] = None) -> dict:

    now = now or utcnow()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    today_end = today_start + timedelta(days=1)

    leads_q = db.query(Lead).filter(Lead.is_deleted.is_(False))
    if user.role == "agent":
        leads_q = leads_q.filter(Lead.assigned_user_id == user.id)
    leads = leads_q.all()

    lead_ids = [l.id for l in leads]
    interactions = (
        db.query(Interaction).filter(Interaction.lead_id.in_(lead_ids)).all()
        if lead_ids else []
    )

    calls_today = sum(1 for i in interactions if today_start <= i.created_at < today_end)
    follow_ups_today = sum(
        1 for i in interactions
        if i.follow_up_at and today_start <= i.follow_up_at < today_end
    )
    overdue = sum(1 for i in interactions if i.follow_up_at and i.follow_up_at < now)

    by_source = Counter(l.source for l in leads)

    by_lead = {}
    for i in interactions:
        by_lead.setdefault(i.lead_id, []).append(i)

    by_level = {level: 0 for level in INTEREST_LEVELS}
    for items in by_lead.values():
        level = latest_interest_level(items)
        if level in by_level:
            by_level[level] += 1

    return {
        "calls_made_today": calls_today,
        "follow_ups_today": follow_ups_today,
        "overdue_follow_ups": overdue,
        "total_active_leads": len(leads),
        "leads_by_source": dict(by_source),
        "leads_by_interest_level": by_level,
    }
