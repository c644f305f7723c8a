from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Float

from .models.db import Base

def utcnow():
    return datetime.now(timezone.utc)


class Permit(Base):

    __tablename__ = "permits"

    id = Column(Integer, primary_key=True, index=True)

    permit_id = Column(String, nullable=False, unique=True, index=True)  # business identifier, e.g. "HT-2025-001"

    type = Column(String, nullable=False)  # "hot_work", "confined_space", ...

    status = Column(String, nullable=False, default="draft")

    # ---- Request ----

    location = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    requestor_name = Column(String, nullable=True)
    department = Column(String, nullable=True)
    contact_number = Column(String, nullable=True)
    emergency_contact = Column(String, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)

    # ---- Approvers ----

    risk_level = Column(String, nullable=True)
    safety_officer = Column(String, nullable=True)
    department_head = Column(String, nullable=True)
    maintenance_approver = Column(String, nullable=True)

    # ---- Hazards & measures ----

    identified_hazards = Column(Text, nullable=True)
    additional_comments = Column(Text, nullable=True)
    selected_hazards = Column(JSON, nullable=True)  # list of hazard codes
    hazard_notes = Column(Text, nullable=True)
    completed_measures = Column(JSON, nullable=True)  # list of measure codes
    immediate_actions = Column(Text, nullable=True)
    before_work_starts = Column(Text, nullable=True)
    compliance_notes = Column(Text, nullable=True)
    overall_risk = Column(String, nullable=True)

    # ---- Signatures ----

    performer_name = Column(String, nullable=True)
    performer_signature = Column(Text, nullable=True)
    pre_work_measures_signature = Column(Text, nullable=True)
    work_removal_signature = Column(Text, nullable=True)

    # ---- Map position ----

    work_location_id = Column(Integer, nullable=True)
    map_position_x = Column(Float, nullable=True)
    map_position_y = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
