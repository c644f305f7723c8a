from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialized with camelCase keys, the shape the audit trail view reads."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuditLogOut(CamelModel):
    id: int
    permit_id: int
    user_id: int
    action_type: str
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: str  # ISO format datetime

    # Display helpers
    user_name: Optional[str] = None
    user_full_name: Optional[str] = None
    permit_id_string: Optional[str] = None
    permit_type: Optional[str] = None


class ActionCount(CamelModel):
    action_type: str
    count: int


class AuditStatsOut(CamelModel):
    total_logs: int
    today_logs: int
    recent_actions: List[ActionCount]


class ActionTypeOut(BaseModel):
    value: str
    label: str
