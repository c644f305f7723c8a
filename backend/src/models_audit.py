from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .models.db import Base
from .models.auth_models import User  # noqa: F401  (relationship target)

def utcnow():
    return datetime.now(timezone.utc)

class AuditLog(Base):
    """Append-only record of one field-level (or whole-record) permit change."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    # Plain column, no foreign key: entries outlive the permit row they describe
    permit_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action_type = Column(String, nullable=False, index=True)
    field_name = Column(String, nullable=True)  # NULL only for create/delete
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    meta = Column("metadata", JSON, nullable=True)  # "metadata" is reserved on declarative classes
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    user = relationship("User", lazy="joined")
