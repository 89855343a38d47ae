from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select

from app.stockflow.db.models import AuditEvent


@dataclass(frozen=True)
class AuditQueryFilters:
    entity_type: str | None = None
    entity_id: str | None = None
    action: str | None = None
    actor_id: str | None = None


class AuditRepository:
    def __init__(self, db):
        self.db = db

    def create(self, event: AuditEvent) -> AuditEvent:
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def list_events(self, filters: AuditQueryFilters, *, limit: int, offset: int) -> tuple[list[AuditEvent], int]:
        query = select(AuditEvent)
        if filters.entity_type:
            query = query.where(AuditEvent.entity_type == filters.entity_type)
        if filters.entity_id:
            query = query.where(AuditEvent.entity_id == filters.entity_id)
        if filters.action:
            query = query.where(AuditEvent.action == filters.action)
        if filters.actor_id:
            query = query.where(AuditEvent.actor_id == filters.actor_id)
        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        rows = (
            self.db.execute(query.order_by(AuditEvent.created_at.desc()).offset(offset).limit(limit))
            .scalars()
            .all()
        )
        return rows, total
