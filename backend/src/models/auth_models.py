from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime
from .db import Base


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    """Actor referenced by every audit entry."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    role = Column(String, default="user", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def display_name(self) -> str:
        return self.full_name or self.username
