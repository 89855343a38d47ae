import logging
from dataclasses import dataclass
from datetime import datetime

from app.stockflow.core.context import Actor
from app.stockflow.core.errors import json_safe
from app.stockflow.db.models import AuditEvent
from app.stockflow.repos.audit import AuditRepository

logger = logging.getLogger(__name__)


@dataclass
class AuditEventPayload:
    actor: Actor | None
    trace_id: str | None
    action: str
    entity_type: str
    entity_id: str | None
    before: dict | None
    after: dict | None
    metadata: dict | None = None
    result: str = "success"


class AuditService:
    """Best-effort activity log.

    Failures are logged and swallowed so the business operation that already
    committed is never reported as failed.
    """

    def __init__(self, db):
        self.repo = AuditRepository(db)

    def record_event(self, payload: AuditEventPayload) -> None:
        try:
            event = AuditEvent(
                actor_id=payload.actor.id if payload.actor else None,
                actor_name=payload.actor.name if payload.actor else None,
                trace_id=payload.trace_id,
                action=payload.action,
                entity_type=payload.entity_type,
                entity_id=payload.entity_id,
                before_payload=json_safe(payload.before),
                after_payload=json_safe(payload.after),
                event_metadata=json_safe(payload.metadata or {}),
                result=payload.result,
                created_at=datetime.utcnow(),
            )
            self.repo.create(event)
        except Exception:
            self.repo.db.rollback()
            logger.exception(
                "Failed to write audit event",
                extra={
                    "action": payload.action,
                    "trace_id": payload.trace_id,
                    "entity_id": payload.entity_id,
                },
            )
