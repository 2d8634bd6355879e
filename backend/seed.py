"""Create the default admin / manager / agent accounts.

    python -m backend.seed
"""

import logging

from sqlalchemy.orm import Session

from backend.config import SEED_PASSWORD
from backend.db import SessionLocal, engine
from backend.models import Base, User
from backend.services.auth import hash_password


logger = logging.getLogger(__name__)

DEFAULT_USERS = [
    ("John Admin", "admin@realestate.com", "admin"),
    ("Sarah Manager", "manager@realestate.com", "manager"),
    ("Mike Agent", "agent@realestate.com", "agent"),
]


def seed_users(db: Session, password: str = SEED_PASSWORD) -> int:
    """Insert the default users that are missing. Returns how many were created."""

    created = 0
    hashed = hash_password(password)

    for name, email, role in DEFAULT_USERS:
        if db.query(User).filter(User.email == email).first():
            continue
        db.add(User(name=name, email=email, hashed_password=hashed, role=role))
        created += 1

    db.commit()
    logger.info(f"Seeded users | created={created}")
    return created


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_users(db)
    finally:
        db.close()
