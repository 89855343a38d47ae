from fastapi import APIRouter, Depends, Query

from app.stockflow.core.config import settings
from app.stockflow.core.error_catalog import DomainValidationError
from app.stockflow.db.session import get_db
from app.stockflow.repos.audit import AuditQueryFilters, AuditRepository
from app.stockflow.schemas.audit import AuditEventItem, AuditEventListResponse


router = APIRouter()


@router.get("/stockflow/audit-events", response_model=AuditEventListResponse)
def list_audit_events(
    entity_type: str | None = None,
    entity_id: str | None = None,
    action: str | None = None,
    actor_id: str | None = None,
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    db=Depends(get_db),
):
    if limit > settings.AUDIT_LIST_MAX_PAGE_SIZE:
        raise DomainValidationError(
            details={"message": f"limit must be <= {settings.AUDIT_LIST_MAX_PAGE_SIZE}", "limit": limit}
        )
    rows, total = AuditRepository(db).list_events(
        AuditQueryFilters(entity_type=entity_type, entity_id=entity_id, action=action, actor_id=actor_id),
        limit=limit,
        offset=offset,
    )
    return AuditEventListResponse(
        events=[
            AuditEventItem(
                id=str(event.id),
                actor_id=event.actor_id,
                actor_name=event.actor_name,
                trace_id=event.trace_id,
                action=event.action,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                before=event.before_payload,
                after=event.after_payload,
                metadata=event.event_metadata,
                result=event.result,
                created_at=event.created_at,
            )
            for event in rows
        ],
        total=total,
        limit=limit,
        offset=offset,
    )
