import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from .. import config
from ..db import get_db
from ..models_audit import AuditLog
from ..services.audit import (
    ACTION_TYPES,
    ACTION_TYPE_LABELS,
    AuditLogFilters,
    audit_logger,
    search_audit_logs,
)
from .schemas_audit import AuditLogOut, AuditStatsOut, ActionTypeOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audit-logs", tags=["audit-logs"])


def _iso(v: datetime) -> str:
    if v.tzinfo is None:
        v = v.replace(tzinfo=timezone.utc)
    return v.isoformat()


def _to_out(log: AuditLog) -> AuditLogOut:
    meta = log.meta or {}
    user = log.user
    business_id = meta.get("permitId")
    return AuditLogOut(
        id=log.id,
        permit_id=log.permit_id,
        user_id=log.user_id,
        action_type=log.action_type,
        field_name=log.field_name,
        old_value=log.old_value,
        new_value=log.new_value,
        ip_address=log.ip_address,
        user_agent=log.user_agent,
        metadata=log.meta,
        created_at=_iso(log.created_at),
        user_name=user.username if user is not None else None,
        user_full_name=user.full_name if user is not None else None,
        permit_id_string=str(business_id) if business_id is not None else None,
        permit_type=meta.get("permitType"),
    )


def to_out_list(logs) -> List[AuditLogOut]:
    return [_to_out(log) for log in logs]


@router.get("", response_model=List[AuditLogOut])
def list_audit_logs(
    response: Response,
    permit_id: Optional[int] = Query(None, alias="permitId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    action_type: Optional[str] = Query(None, alias="actionType"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    limit: int = Query(config.AUDIT_DEFAULT_LIMIT, ge=1, le=config.AUDIT_MAX_LIMIT),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None, description="Free-text narrowing of the fetched page"),
    db: Session = Depends(get_db),
):
    """
    List audit entries, most recent first.
    Filters are combined with AND. `search` only narrows the returned page;
    X-Total-Fetched reports the page size before narrowing.
    """
    if action_type and action_type not in ACTION_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown actionType: {action_type}")

    filters = AuditLogFilters(
        permit_id=permit_id,
        user_id=user_id,
        action_type=action_type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    logs = audit_logger.get_all_audit_logs(db, filters)
    response.headers["X-Total-Fetched"] = str(len(logs))
    return to_out_list(search_audit_logs(logs, search))


@router.get("/stats", response_model=AuditStatsOut)
def audit_stats(
    top: Optional[int] = Query(None, ge=1, le=len(ACTION_TYPES)),
    db: Session = Depends(get_db),
):
    """Global counters over the whole log (not affected by any filter)."""
    return AuditStatsOut.model_validate(audit_logger.get_audit_stats(db, top_n=top))


@router.get("/action-types", response_model=List[ActionTypeOut])
def list_action_types():
    return [ActionTypeOut(value=a, label=ACTION_TYPE_LABELS[a]) for a in ACTION_TYPES]
