from typing import List, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, constr, field_validator



class PermitFields(BaseModel):
    """Editable permit fields (all optional so the same shape serves partial updates)."""

    type: Optional[str] = None
    status: Optional[str] = None

    location: Optional[str] = None
    description: Optional[str] = None
    requestor_name: Optional[str] = None
    department: Optional[str] = None
    contact_number: Optional[str] = None
    emergency_contact: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    risk_level: Optional[str] = None
    safety_officer: Optional[str] = None
    department_head: Optional[str] = None
    maintenance_approver: Optional[str] = None

    identified_hazards: Optional[str] = None
    additional_comments: Optional[str] = None
    selected_hazards: Optional[List[str]] = None
    hazard_notes: Optional[str] = None
    completed_measures: Optional[List[str]] = None
    immediate_actions: Optional[str] = None
    before_work_starts: Optional[str] = None
    compliance_notes: Optional[str] = None
    overall_risk: Optional[str] = None

    performer_name: Optional[str] = None
    performer_signature: Optional[str] = None
    pre_work_measures_signature: Optional[str] = None
    work_removal_signature: Optional[str] = None
    work_location_id: Optional[int] = None
    map_position_x: Optional[float] = None
    map_position_y: Optional[float] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Stored without offset; naive input is taken as UTC
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class PermitIn(PermitFields):
    permit_id: constr(strip_whitespace=True, min_length=1)  # business identifier
    type: constr(strip_whitespace=True, min_length=1)


class PermitPatch(PermitFields):
    pass


class PermitOut(PermitFields):
    id: int
    permit_id: str
    type: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PermitApproval(BaseModel):
    """Approver sign-off; `role` selects which approver column is filled in."""
    approver_name: constr(strip_whitespace=True, min_length=1)
    role: constr(pattern="^(safety_officer|department_head|maintenance_approver)$") = "department_head"
    status: str = "approved"


class PermitSignature(BaseModel):
    performer_name: Optional[str] = None
    performer_signature: Optional[str] = None
    pre_work_measures_signature: Optional[str] = None
    work_removal_signature: Optional[str] = None
