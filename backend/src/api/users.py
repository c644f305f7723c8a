"""Users referenced by audit entries, and the acting-user dependency."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, constr

from ..db import get_db
from ..models.auth_models import User

router = APIRouter(prefix="/users", tags=["users"])


class UserIn(BaseModel):
    username: constr(strip_whitespace=True, min_length=1)
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: str = "user"


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: str


def get_current_user(
    x_user_id: Optional[int] = Header(None),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the acting user from the X-User-Id header."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    user = db.query(User).filter(User.id == x_user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


@router.get("", response_model=List[UserOut])
def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.username).all()


@router.post("", response_model=UserOut)
def create_user(payload: UserIn, db: Session = Depends(get_db)):
    existing = db.query(User).filter(
        func.lower(User.username) == func.lower(payload.username)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Username already exists")

    user = User(
        username=payload.username,
        full_name=payload.full_name,
        email=payload.email,
        role=payload.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
