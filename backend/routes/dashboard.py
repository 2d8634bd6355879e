import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.db import get_db
from backend.models import User
from backend.services.auth import get_current_user
from backend.services.dashboard import dashboard_stats


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats")
def get_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):

    stats = dashboard_stats(db, user)

    logger.info(
        f"Dashboard stats | user={user.id} leads={stats['total_active_leads']} "
        f"calls_today={stats['calls_made_today']}"
    )
    return stats
