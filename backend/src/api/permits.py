import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..db import get_db
from ..models_permit import Permit
from ..models.auth_models import User
from ..services.audit import (
    ACTION_APPROVAL,
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_SIGNATURE,
    ACTION_UPDATE,
    AuditContext,
    audit_logger,
    permit_snapshot,
)
from .users import get_current_user
from .audit_logs import to_out_list
from .schemas_audit import AuditLogOut
from .schemas_permit import PermitIn, PermitPatch, PermitOut, PermitApproval, PermitSignature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/permits", tags=["permits"])


def _audit_context(request: Request, user: User, action_type: str) -> AuditContext:
    return AuditContext(
        user_id=user.id,
        action_type=action_type,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def _get_permit_or_404(db: Session, permit_id: int) -> Permit:
    p = db.query(Permit).filter(Permit.id == permit_id).first()
    if not p:
        raise HTTPException(status_code=404, detail="Permit not found")
    return p


def _apply_and_log(db: Session, p: Permit, values: dict, context: AuditContext) -> Permit:
    """Apply field values, commit, then record the field-level deltas."""
    original = permit_snapshot(p)
    for field, value in values.items():
        setattr(p, field, value)
    db.commit()
    db.refresh(p)

    audit_logger.log_permit_changes(db, original, p, context)
    return p


@router.post("", response_model=PermitOut)
def create_permit(
    payload: PermitIn,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if db.query(Permit).filter(Permit.permit_id == payload.permit_id).first():
        raise HTTPException(status_code=409, detail=f"Permit {payload.permit_id} already exists")

    values = payload.model_dump()
    values["status"] = values.get("status") or "draft"
    p = Permit(**values)
    db.add(p)
    db.commit()
    db.refresh(p)

    audit_logger.log_permit_creation(db, p, _audit_context(request, user, ACTION_CREATE))
    return p


@router.get("", response_model=List[PermitOut])
def list_permits(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    qs = db.query(Permit)
    if status:
        qs = qs.filter(Permit.status == status)
    return qs.order_by(desc(Permit.updated_at), desc(Permit.id)).limit(limit).all()


@router.get("/{permit_id}", response_model=PermitOut)
def get_permit(permit_id: int, db: Session = Depends(get_db)):
    return _get_permit_or_404(db, permit_id)


@router.put("/{permit_id}", response_model=PermitOut)
def update_permit(
    permit_id: int,
    payload: PermitPatch,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Partial update: only fields present in the body are written."""
    p = _get_permit_or_404(db, permit_id)
    values = payload.model_dump(exclude_unset=True)
    if "type" in values and not values["type"]:
        raise HTTPException(status_code=400, detail="type cannot be empty")
    if "status" in values and not values["status"]:
        raise HTTPException(status_code=400, detail="status cannot be empty")

    return _apply_and_log(db, p, values, _audit_context(request, user, ACTION_UPDATE))


@router.post("/{permit_id}/approve", response_model=PermitOut)
def approve_permit(
    permit_id: int,
    payload: PermitApproval,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    p = _get_permit_or_404(db, permit_id)
    values = {payload.role: payload.approver_name, "status": payload.status}
    return _apply_and_log(db, p, values, _audit_context(request, user, ACTION_APPROVAL))


@router.post("/{permit_id}/sign", response_model=PermitOut)
def sign_permit(
    permit_id: int,
    payload: PermitSignature,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    p = _get_permit_or_404(db, permit_id)
    values = payload.model_dump(exclude_unset=True)
    if not values:
        raise HTTPException(status_code=400, detail="No signature field provided")
    return _apply_and_log(db, p, values, _audit_context(request, user, ACTION_SIGNATURE))


@router.delete("/{permit_id}")
def delete_permit(
    permit_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    p = _get_permit_or_404(db, permit_id)
    # The row is gone after commit; the deletion entry is built from this copy
    snapshot = permit_snapshot(p)
    db.delete(p)
    db.commit()
    logger.info(f"Deleted permit {snapshot['permit_id']} (id={permit_id})")

    audit_logger.log_permit_deletion(db, snapshot, _audit_context(request, user, ACTION_DELETE))
    return {"ok": True, "id": permit_id}


@router.get("/{permit_id}/audit-logs", response_model=List[AuditLogOut])
def permit_audit_logs(permit_id: int, db: Session = Depends(get_db)):
    """Full history of one permit, most recent first (deleted permits included)."""
    return to_out_list(audit_logger.get_permit_audit_logs(db, permit_id))
