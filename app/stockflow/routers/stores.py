from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.stockflow.core.context import Actor, require_actor
from app.stockflow.core.error_catalog import ConflictError, DomainValidationError, ErrorCatalog, NotFoundError
from app.stockflow.db.models import Store
from app.stockflow.db.session import get_db
from app.stockflow.repos.stores import StoreRepository
from app.stockflow.schemas.stores import StoreCreateRequest, StoreItem, StoreListResponse, StoreUpdateRequest
from app.stockflow.services.audit import AuditEventPayload, AuditService


router = APIRouter()


def _store_item(store: Store) -> StoreItem:
    return StoreItem(
        id=str(store.id),
        name=store.name,
        code=store.code,
        is_main=store.is_main,
        is_active=store.is_active,
        created_at=store.created_at,
        updated_at=store.updated_at,
    )


def _get_store_or_404(repo: StoreRepository, store_id: UUID) -> Store:
    store = repo.get_by_id(store_id)
    if store is None:
        raise NotFoundError(ErrorCatalog.STORE_NOT_FOUND, details={"store_id": str(store_id)})
    return store


@router.get("/stockflow/stores", response_model=StoreListResponse)
def list_stores(
    search: str | None = None,
    is_active: bool | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db=Depends(get_db),
):
    rows, total = StoreRepository(db).list_stores(search=search, is_active=is_active, limit=limit, offset=offset)
    return StoreListResponse(stores=[_store_item(store) for store in rows], total=total, limit=limit, offset=offset)


@router.post("/stockflow/stores", response_model=StoreItem, status_code=201)
def create_store(
    request: Request,
    payload: StoreCreateRequest,
    actor: Actor = Depends(require_actor),
    db=Depends(get_db),
):
    repo = StoreRepository(db)
    if payload.code and repo.get_by_code(payload.code):
        raise ConflictError(details={"message": "store code already exists", "code": payload.code})
    store = repo.create(Store(name=payload.name.strip(), code=payload.code, is_main=False, is_active=True))
    response = _store_item(store)
    AuditService(db).record_event(
        AuditEventPayload(
            actor=actor,
            trace_id=getattr(request.state, "trace_id", "") or None,
            action="store.create",
            entity_type="store",
            entity_id=response.id,
            before=None,
            after=response.model_dump(mode="json"),
        )
    )
    return response


@router.get("/stockflow/stores/{store_id}", response_model=StoreItem)
def get_store(store_id: UUID, db=Depends(get_db)):
    return _store_item(_get_store_or_404(StoreRepository(db), store_id))


@router.patch("/stockflow/stores/{store_id}", response_model=StoreItem)
def update_store(
    store_id: UUID,
    request: Request,
    payload: StoreUpdateRequest,
    actor: Actor = Depends(require_actor),
    db=Depends(get_db),
):
    repo = StoreRepository(db)
    store = _get_store_or_404(repo, store_id)
    before = _store_item(store).model_dump(mode="json")

    if payload.is_active is False and store.is_main:
        raise DomainValidationError(details={"message": "the main store cannot be deactivated"})
    if payload.code and payload.code != store.code:
        existing = repo.get_by_code(payload.code)
        if existing is not None and existing.id != store.id:
            raise ConflictError(details={"message": "store code already exists", "code": payload.code})
        store.code = payload.code
    if payload.name is not None:
        store.name = payload.name.strip()
    if payload.is_active is not None:
        store.is_active = payload.is_active
    store.updated_at = datetime.utcnow()
    store = repo.update(store)

    response = _store_item(store)
    AuditService(db).record_event(
        AuditEventPayload(
            actor=actor,
            trace_id=getattr(request.state, "trace_id", "") or None,
            action="store.update",
            entity_type="store",
            entity_id=response.id,
            before=before,
            after=response.model_dump(mode="json"),
        )
    )
    return response
