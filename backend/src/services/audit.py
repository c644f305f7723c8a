"""
Field-level audit trail for permits.

The change detector compares a permit's before/after state over a fixed
allow-list of business fields. The recorder turns each difference into one
AuditLog row, adds create/delete markers and a synthetic status_change row,
and serves the read-side queries used by the audit trail view.

Writes are best-effort: a failed insert is rolled back, logged and dropped so
that an audit gap never aborts the permit operation it accompanies. Reads
propagate their errors.
"""
import copy
import json
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from .. import config
from ..models_audit import AuditLog

logger = logging.getLogger(__name__)


# Action type constants
ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_STATUS_CHANGE = "status_change"
ACTION_APPROVAL = "approval"
ACTION_SIGNATURE = "signature"

ACTION_TYPES = (
    ACTION_CREATE,
    ACTION_UPDATE,
    ACTION_DELETE,
    ACTION_STATUS_CHANGE,
    ACTION_APPROVAL,
    ACTION_SIGNATURE,
)

# Whole-record markers; never carried by a field-level entry
RECORD_ACTIONS = (ACTION_CREATE, ACTION_DELETE)

ACTION_TYPE_LABELS = {
    ACTION_CREATE: "Erstellt",
    ACTION_UPDATE: "Aktualisiert",
    ACTION_DELETE: "Gelöscht",
    ACTION_STATUS_CHANGE: "Status geändert",
    ACTION_APPROVAL: "Genehmigt",
    ACTION_SIGNATURE: "Unterschrift",
}

# Stored as the old side of a status transition when the permit had no status
MISSING_STATUS = "undefined"

# Only these permit fields are audited; internal columns are left out on purpose
TRACKED_FIELDS = (
    "type",
    "location",
    "description",
    "requestor_name",
    "department",
    "contact_number",
    "emergency_contact",
    "start_date",
    "end_date",
    "status",
    "risk_level",
    "safety_officer",
    "department_head",
    "maintenance_approver",
    "identified_hazards",
    "additional_comments",
    "selected_hazards",
    "hazard_notes",
    "completed_measures",
    "performer_name",
    "performer_signature",
    "pre_work_measures_signature",
    "work_removal_signature",
    "immediate_actions",
    "before_work_starts",
    "compliance_notes",
    "overall_risk",
    "work_location_id",
    "map_position_x",
    "map_position_y",
)

SNAPSHOT_FIELDS = ("id", "permit_id") + TRACKED_FIELDS


def utcnow():
    return datetime.now(timezone.utc)


class AuditWriteError(Exception):
    """Raised in strict mode when audit entries could not be persisted."""


def _check_action_type(value: str) -> str:
    if value not in ACTION_TYPES:
        raise ValueError(f"unknown action type {value!r}, expected one of {', '.join(ACTION_TYPES)}")
    return value


class AuditContext(BaseModel):
    """Provenance of one logical permit operation, shared by all rows it produces."""
    user_id: int
    action_type: str = ACTION_UPDATE
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("action_type")
    @classmethod
    def _known_action_type(cls, v: str) -> str:
        return _check_action_type(v)


class FieldChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class AuditWriteResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    ok: bool
    written: int = 0
    error: Optional[Exception] = None


class AuditLogFilters(BaseModel):
    """Recognised options of get_all_audit_logs; all given filters are ANDed."""
    user_id: Optional[int] = None
    permit_id: Optional[int] = None
    action_type: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = Field(None, ge=0)
    offset: Optional[int] = Field(None, ge=0)

    @field_validator("action_type")
    @classmethod
    def _known_action_type(cls, v: Optional[str]) -> Optional[str]:
        return _check_action_type(v) if v else v


# --------- Change detection ----------

def _field_value(record: Any, field: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def has_value_changed(old_value: Any, new_value: Any) -> bool:
    """Type-aware comparison of one tracked field."""
    if old_value is None and new_value is None:
        return False

    # NULL and "" both mean "no value"
    if old_value is None and new_value == "":
        return False
    if old_value == "" and new_value is None:
        return False

    if isinstance(old_value, (list, tuple)) and isinstance(new_value, (list, tuple)):
        return _canonical_json(list(old_value)) != _canonical_json(list(new_value))

    if isinstance(old_value, datetime) and isinstance(new_value, datetime):
        return _as_utc(old_value) != _as_utc(new_value)

    if isinstance(old_value, (dict, list, tuple)) and isinstance(new_value, (dict, list, tuple)):
        return _canonical_json(old_value) != _canonical_json(new_value)

    if isinstance(old_value, bool) != isinstance(new_value, bool):
        return True

    return old_value != new_value


def detect_changes(original: Any, updated: Any) -> List[FieldChange]:
    """
    Compare two permit states over TRACKED_FIELDS.

    Both sides may be ORM objects or plain mappings (see permit_snapshot).
    Changes come back in TRACKED_FIELDS order. An absent original yields no
    changes: creation is logged by log_permit_creation instead.
    """
    if original is None:
        return []

    changes = []
    for field in TRACKED_FIELDS:
        old_value = _field_value(original, field)
        new_value = _field_value(updated, field)
        if has_value_changed(old_value, new_value):
            changes.append(FieldChange(field=field, old_value=old_value, new_value=new_value))
    return changes


def format_value(value: Any) -> Optional[str]:
    """Normalize a field value into its stored string form."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list, tuple)):
        return _canonical_json(value)
    return str(value)


def permit_snapshot(permit: Any) -> Dict[str, Any]:
    """Copy the audited state of a permit so it survives in-place ORM updates."""
    return {field: copy.deepcopy(_field_value(permit, field)) for field in SNAPSHOT_FIELDS}


def _record_summary(permit: Any) -> str:
    return _canonical_json({
        "permitId": _field_value(permit, "permit_id"),
        "type": _field_value(permit, "type"),
        "status": _field_value(permit, "status"),
    })


# --------- Client-side style search ----------

def _search_haystack(entry: AuditLog) -> List[Optional[str]]:
    meta = entry.meta or {}
    business_id = meta.get("permitId")
    return [
        str(business_id) if business_id is not None else None,
        entry.user.display_name if entry.user is not None else None,
        entry.field_name,
        entry.old_value,
        entry.new_value,
    ]


def search_audit_logs(entries: Iterable[AuditLog], term: Optional[str]) -> List[AuditLog]:
    """Narrow an already fetched page by case-insensitive substring match."""
    entries = list(entries)
    if not term or not term.strip():
        return entries
    needle = term.strip().lower()
    return [
        e for e in entries
        if any(needle in value.lower() for value in _search_haystack(e) if value)
    ]


# --------- Recorder ----------

class AuditLogger:

    def __init__(self, strict: Optional[bool] = None):
        # None defers to config.AUDIT_STRICT at call time
        self._strict = strict

    @property
    def strict(self) -> bool:
        return config.AUDIT_STRICT if self._strict is None else self._strict

    # ---- write API ----

    def log_permit_changes(self, db: Session, original: Any, updated: Any, context: AuditContext) -> None:
        """
        Log permit changes by comparing old and new values.

        Writes one entry per changed tracked field with context.action_type,
        then a status_change entry whenever the status differs (an absent
        original counts as status "undefined").
        """
        self._record(
            db,
            "log_permit_changes",
            lambda: self._change_entries(original, updated, context),
            updated,
            context,
            "Logged {written} entries",
        )

    def log_permit_creation(self, db: Session, permit: Any, context: AuditContext) -> None:
        """Log creation of a new permit."""
        def build():
            now = utcnow()
            return [self._entry(
                permit, context, now,
                action_type=ACTION_CREATE,
                field_name=None,
                old_value=None,
                new_value=_record_summary(permit),
                metadata=self._metadata(permit, context, now),
            )]

        self._record(db, "log_permit_creation", build, permit, context, "Logged creation")

    def log_permit_deletion(self, db: Session, permit: Any, context: AuditContext) -> None:
        """Log permit deletion. Pass a permit_snapshot if the row is already gone."""
        def build():
            now = utcnow()
            return [self._entry(
                permit, context, now,
                action_type=ACTION_DELETE,
                field_name=None,
                old_value=_record_summary(permit),
                new_value=None,
                metadata=self._metadata(permit, context, now),
            )]

        self._record(db, "log_permit_deletion", build, permit, context, "Logged deletion")

    # ---- read API ----

    def get_permit_audit_logs(self, db: Session, permit_id: int) -> List[AuditLog]:
        """All entries of one permit, most recent first."""
        return (
            db.query(AuditLog)
            .filter(AuditLog.permit_id == permit_id)
            .order_by(desc(AuditLog.created_at), desc(AuditLog.id))
            .all()
        )

    def get_all_audit_logs(self, db: Session, filters: Optional[AuditLogFilters] = None) -> List[AuditLog]:
        """Filtered entries, most recent first; no limit/offset means everything."""
        filters = filters or AuditLogFilters()
        qs = db.query(AuditLog)

        if filters.user_id is not None:
            qs = qs.filter(AuditLog.user_id == filters.user_id)
        if filters.permit_id is not None:
            qs = qs.filter(AuditLog.permit_id == filters.permit_id)
        if filters.action_type:
            qs = qs.filter(AuditLog.action_type == filters.action_type)
        if filters.start_date is not None:
            qs = qs.filter(AuditLog.created_at >= _as_utc(filters.start_date))
        if filters.end_date is not None:
            qs = qs.filter(AuditLog.created_at <= _as_utc(filters.end_date))

        qs = qs.order_by(desc(AuditLog.created_at), desc(AuditLog.id))

        if filters.offset:
            qs = qs.offset(filters.offset)
        if filters.limit:
            qs = qs.limit(filters.limit)

        return qs.all()

    def get_audit_stats(self, db: Session, top_n: Optional[int] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Aggregate counters over the whole, unfiltered log.

        "Today" is the server's local calendar day.
        """
        top_n = top_n or config.AUDIT_STATS_TOP_N
        local_now = (now or datetime.now()).astimezone()
        # Midnights resolved separately so DST days get their own length
        midnight = datetime.combine(local_now.date(), time.min)
        day_start = midnight.astimezone()
        day_end = (midnight + timedelta(days=1)).astimezone()

        total = db.query(func.count(AuditLog.id)).scalar() or 0
        today = (
            db.query(func.count(AuditLog.id))
            .filter(AuditLog.created_at >= _as_utc(day_start), AuditLog.created_at < _as_utc(day_end))
            .scalar()
            or 0
        )

        count_col = func.count(AuditLog.id)
        rows = (
            db.query(AuditLog.action_type, count_col)
            .group_by(AuditLog.action_type)
            .order_by(count_col.desc(), AuditLog.action_type)
            .limit(top_n)
            .all()
        )

        return {
            "total_logs": total,
            "today_logs": today,
            "recent_actions": [{"action_type": action_type, "count": count} for action_type, count in rows],
        }

    # ---- internals ----

    def _metadata(self, permit: Any, context: AuditContext, now: datetime, **extra) -> Dict[str, Any]:
        meta = dict(context.metadata or {})
        meta.update({
            "permitId": _field_value(permit, "permit_id"),
            "permitType": _field_value(permit, "type"),
            "timestamp": now.isoformat(),
        })
        meta.update(extra)
        return meta

    def _entry(self, permit: Any, context: AuditContext, now: datetime, *, action_type: str,
               field_name: Optional[str], old_value: Optional[str], new_value: Optional[str],
               metadata: Dict[str, Any]) -> AuditLog:
        return AuditLog(
            permit_id=_field_value(permit, "id"),
            user_id=context.user_id,
            action_type=action_type,
            field_name=field_name,
            old_value=old_value,
            new_value=new_value,
            ip_address=context.ip_address or None,
            user_agent=context.user_agent or None,
            meta=metadata,
            created_at=now,
        )

    def _change_entries(self, original: Any, updated: Any, context: AuditContext) -> List[AuditLog]:
        if context.action_type in RECORD_ACTIONS:
            raise ValueError(f"{context.action_type} cannot be logged as a field change")
        now = utcnow()
        entries = [
            self._entry(
                updated, context, now,
                action_type=context.action_type,
                field_name=change.field,
                old_value=format_value(change.old_value),
                new_value=format_value(change.new_value),
                metadata=self._metadata(updated, context, now),
            )
            for change in detect_changes(original, updated)
        ]

        old_status = _field_value(original, "status") if original is not None else None
        new_status = _field_value(updated, "status")
        if old_status != new_status:
            old_label = old_status or MISSING_STATUS
            entries.append(self._entry(
                updated, context, now,
                action_type=ACTION_STATUS_CHANGE,
                field_name="status",
                old_value=old_label,
                new_value=new_status,
                metadata=self._metadata(updated, context, now, statusTransition=f"{old_label} -> {new_status}"),
            ))
        return entries

    def _write_entries(self, db: Session, entries: List[AuditLog]) -> AuditWriteResult:
        """Insert the rows of one logical operation atomically."""
        if not entries:
            return AuditWriteResult(ok=True, written=0)
        try:
            db.add_all(entries)
            db.commit()
        except Exception as e:
            try:
                db.rollback()
            except Exception:
                logger.exception("Audit: rollback failed after write error")
            return AuditWriteResult(ok=False, error=e)
        return AuditWriteResult(ok=True, written=len(entries))

    def _record(self, db: Session, operation: str, build: Callable[[], List[AuditLog]],
                permit: Any, context: AuditContext, summary: str) -> None:
        label = None
        try:
            label = _field_value(permit, "permit_id")
            entries = build()
        except Exception as e:
            result = AuditWriteResult(ok=False, error=e)
        else:
            result = self._write_entries(db, entries)
        self._settle(result, operation, label, context, summary)

    def _settle(self, result: AuditWriteResult, operation: str, label: Optional[str],
                context: AuditContext, summary: str) -> None:
        """The one place where a failed audit write is dropped (or raised in strict mode)."""
        if result.ok:
            logger.info(f"Audit: {summary.format(written=result.written)} for permit {label} by user {context.user_id}")
            return

        logger.error(
            f"Error in audit {operation} for permit {label}: {result.error}",
            exc_info=result.error,
            extra={"audit_operation": operation, "permit_id": label, "user_id": context.user_id},
        )
        if self.strict:
            raise AuditWriteError(f"{operation} failed for permit {label}") from result.error


# Shared instance
audit_logger = AuditLogger()
