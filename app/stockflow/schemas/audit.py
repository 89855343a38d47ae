from datetime import datetime

from pydantic import BaseModel


class AuditEventItem(BaseModel):
    id: str
    actor_id: str | None
    actor_name: str | None
    trace_id: str | None
    action: str
    entity_type: str
    entity_id: str | None
    before: dict | None
    after: dict | None
    metadata: dict | None
    result: str
    created_at: datetime


class AuditEventListResponse(BaseModel):
    events: list[AuditEventItem]
    total: int
    limit: int
    offset: int
