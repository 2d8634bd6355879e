import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.db import get_db
from backend.models import User
from backend.services.auth import create_access_token, get_current_user, verify_password

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------- SCHEMAS ----------------

class LoginInput(BaseModel):
    email: str
    password: str


def user_out(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
    }


# ---------------- ROUTES ----------------

@router.post("/login")
def login(data: LoginInput, db: Session = Depends(get_db)):

    user = db.query(User).filter(User.email == data.email.strip().lower()).first()

    if not user or not verify_password(data.password, user.hashed_password):
        logger.info(f"Login failed | email={data.email}")
        raise HTTPException(401, "Invalid credentials")

    logger.info(f"Login | user={user.id} role={user.role}")

    return {
        "access_token": create_access_token(user),
        "token_type": "bearer",
        "user": user_out(user),
    }


@router.get("/me")
def read_me(user: User = Depends(get_current_user)):
    return user_out(user)
