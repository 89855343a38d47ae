from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.stockflow.core.context import Actor, require_actor
from app.stockflow.db.models import Product, StockRecord
from app.stockflow.db.session import get_db, transaction
from app.stockflow.repos.products import ProductRepository
from app.stockflow.repos.stock import StockQueryFilters, StockRepository
from app.stockflow.schemas.stock import (
    StockAdjustmentRequest,
    StockAdjustmentResult,
    StockListResponse,
    StockMoveRequest,
    StockMutationResponse,
    StockRow,
)
from app.stockflow.services.audit import AuditEventPayload, AuditService
from app.stockflow.services.idempotency import begin_idempotent_request
from app.stockflow.services.stock_ledger import StockAdjustment, StockLedger


router = APIRouter()


def _stock_row(record: StockRecord, reserved: dict, product_name: str | None = None) -> StockRow:
    bucket = reserved.get(record.product_id, {})
    return StockRow(
        id=str(record.id),
        product_id=str(record.product_id),
        product_name=product_name,
        store_id=str(record.store_id),
        warehouse_qty=record.warehouse_qty,
        store_qty=record.store_qty,
        total=record.total,
        reserved_warehouse=bucket.get("warehouse", 0),
        reserved_store=bucket.get("store", 0),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _adjustment_result(adjustment: StockAdjustment) -> StockAdjustmentResult:
    return StockAdjustmentResult(
        product_id=adjustment.product_id,
        store_id=adjustment.store_id,
        sub_location=adjustment.sub_location,
        previous=adjustment.previous,
        current=adjustment.current,
        delta=adjustment.delta,
    )


def _mutation_response(db, ledger: StockLedger, product_id, store_id, adjustments) -> StockMutationResponse:
    record = ledger.repo.get_record(product_id, store_id)
    product = db.get(Product, product_id)
    reserved = ledger.reserved_quantities(store_id, [product_id])
    return StockMutationResponse(
        adjustments=[_adjustment_result(adjustment) for adjustment in adjustments],
        record=_stock_row(record, reserved, product.name if product else None),
    )


@router.get("/stockflow/stock", response_model=StockListResponse)
def list_stock(
    store_id: UUID | None = None,
    product_id: UUID | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    db=Depends(get_db),
):
    repo = StockRepository(db)
    ledger = StockLedger(db)
    rows, total = repo.list_records(
        StockQueryFilters(store_id=store_id, product_id=product_id),
        page=page,
        page_size=page_size,
    )
    products = {
        product_id: product.name
        for product_id, product in ProductRepository(db).get_many({row.product_id for row in rows}).items()
    }
    reserved_by_store: dict = {}
    for store in {row.store_id for row in rows}:
        reserved_by_store[store] = ledger.reserved_quantities(
            store, [row.product_id for row in rows if row.store_id == store]
        )
    return StockListResponse(
        rows=[
            _stock_row(row, reserved_by_store.get(row.store_id, {}), products.get(row.product_id))
            for row in rows
        ],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/stockflow/stock/adjustments", response_model=StockMutationResponse)
def adjust_stock(
    request: Request,
    payload: StockAdjustmentRequest,
    actor: Actor = Depends(require_actor),
    db=Depends(get_db),
):
    context, replay = begin_idempotent_request(request, db, payload.model_dump(mode="json"))
    if replay:
        return replay

    product_id, store_id = payload.product_id, payload.store_id
    ledger = StockLedger(db)
    with transaction(db):
        adjustment = ledger.set_quantity(product_id, store_id, payload.sub_location, payload.quantity)
    response = _mutation_response(db, ledger, product_id, store_id, [adjustment])
    response_body = response.model_dump(mode="json")
    if context:
        context.record_success(status_code=200, response_body=response_body)
    AuditService(db).record_event(
        AuditEventPayload(
            actor=actor,
            trace_id=getattr(request.state, "trace_id", "") or None,
            action="stock.adjust",
            entity_type="stock",
            entity_id=response.record.id,
            before={"quantity": adjustment.previous, "sub_location": adjustment.sub_location},
            after={"quantity": adjustment.current, "sub_location": adjustment.sub_location},
            metadata={"reason": payload.reason, "delta": adjustment.delta},
        )
    )
    return response


@router.post("/stockflow/stock/moves", response_model=StockMutationResponse)
def move_stock(
    request: Request,
    payload: StockMoveRequest,
    actor: Actor = Depends(require_actor),
    db=Depends(get_db),
):
    context, replay = begin_idempotent_request(request, db, payload.model_dump(mode="json"))
    if replay:
        return replay

    product_id, store_id = payload.product_id, payload.store_id
    ledger = StockLedger(db)
    with transaction(db):
        ledger.lock_rows([(product_id, store_id)])
        outgoing, incoming = ledger.move_between_locations(
            product_id,
            store_id,
            payload.from_location,
            payload.to_location,
            payload.quantity,
        )
    response = _mutation_response(db, ledger, product_id, store_id, [outgoing, incoming])
    response_body = response.model_dump(mode="json")
    if context:
        context.record_success(status_code=200, response_body=response_body)
    AuditService(db).record_event(
        AuditEventPayload(
            actor=actor,
            trace_id=getattr(request.state, "trace_id", "") or None,
            action="stock.move",
            entity_type="stock",
            entity_id=response.record.id,
            before={outgoing.sub_location: outgoing.previous, incoming.sub_location: incoming.previous},
            after={outgoing.sub_location: outgoing.current, incoming.sub_location: incoming.current},
            metadata={"quantity": payload.quantity, "note": payload.note},
        )
    )
    return response
