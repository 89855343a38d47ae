from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.stockflow.core.context import Actor, require_actor
from app.stockflow.db.models import Transfer, TransferLine
from app.stockflow.db.session import get_db
from app.stockflow.schemas.errors import ApiErrorResponse, ApiValidationErrorResponse
from app.stockflow.schemas.transfers import (
    PendingReceptionsResponse,
    TransferActionRequest,
    TransferCancelResponse,
    TransferCreateRequest,
    TransferLineResponse,
    TransferListResponse,
    TransferResponse,
)
from app.stockflow.services.audit import AuditEventPayload, AuditService
from app.stockflow.services.idempotency import begin_idempotent_request
from app.stockflow.services.sales_ledger import PaymentBreakdown
from app.stockflow.services.transfers import ReceivedItem, TransferEngine, TransferLineInput


router = APIRouter()

_MUTATION_ERROR_RESPONSES = {
    400: {"description": "Missing actor identity", "model": ApiErrorResponse},
    404: {"description": "Transfer, store or product not found", "model": ApiErrorResponse},
    409: {"description": "Concurrent write, lock timeout or idempotency conflict", "model": ApiErrorResponse},
    422: {
        "description": "Validation or business rule violation",
        "model": ApiValidationErrorResponse,
        "content": {
            "application/json": {
                "example": {
                    "code": "INSUFFICIENT_STOCK",
                    "message": "Insufficient stock",
                    "details": {"sub_location": "warehouse", "available": 15, "requested": 20},
                    "trace_id": "trace-123",
                }
            }
        },
    },
}


def _normalize_uuid(value: str | UUID | None) -> str | None:
    return str(value) if value is not None else None


def _line_response(line: TransferLine) -> TransferLineResponse:
    return TransferLineResponse(
        id=_normalize_uuid(line.id),
        position=line.position,
        product_id=_normalize_uuid(line.product_id),
        product_name=line.product_name,
        product_reference=line.product_reference,
        requested_qty=line.requested_qty,
        from_location=line.from_location,
        unit_price=line.unit_price,
        received_qty=line.received_qty,
        received_location=line.received_location,
        receiving_notes=line.receiving_notes,
        shortage_qty=line.requested_qty - line.received_qty if line.received_qty is not None else None,
    )


def transfer_response(transfer: Transfer, lines: list[TransferLine]) -> TransferResponse:
    total_value = sum((Decimal(line.unit_price) * line.requested_qty for line in lines), Decimal("0"))
    return TransferResponse(
        id=_normalize_uuid(transfer.id),
        transfer_number=transfer.transfer_number,
        origin_store_id=_normalize_uuid(transfer.origin_store_id),
        destination_store_id=_normalize_uuid(transfer.destination_store_id),
        status=transfer.status,
        description=transfer.description,
        notes=transfer.notes,
        sale_id=_normalize_uuid(transfer.sale_id),
        total_value=total_value,
        created_by=transfer.created_by,
        created_by_name=transfer.created_by_name,
        dispatched_by=transfer.dispatched_by,
        dispatched_at=transfer.dispatched_at,
        received_by=transfer.received_by,
        received_by_name=transfer.received_by_name,
        received_at=transfer.received_at,
        cancelled_by=transfer.cancelled_by,
        cancelled_by_name=transfer.cancelled_by_name,
        cancelled_at=transfer.cancelled_at,
        cancellation_reason=transfer.cancellation_reason,
        created_at=transfer.created_at,
        updated_at=transfer.updated_at,
        lines=[_line_response(line) for line in lines],
    )


def _record_audit(db, request: Request, actor: Actor, action: str, transfer_id: str, before, after, metadata=None):
    AuditService(db).record_event(
        AuditEventPayload(
            actor=actor,
            trace_id=getattr(request.state, "trace_id", "") or None,
            action=action,
            entity_type="transfer",
            entity_id=transfer_id,
            before=before,
            after=after,
            metadata=metadata,
        )
    )


@router.get("/stockflow/transfers", response_model=TransferListResponse)
def list_transfers(
    store_id: UUID | None = None,
    status: list[str] | None = Query(default=None),
    direction: str = "all",
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    db=Depends(get_db),
):
    result = TransferEngine(db).list_transfers(
        store_id=store_id,
        statuses=status,
        direction=direction,
        page=page,
        page_size=page_size,
    )
    return TransferListResponse(
        items=[transfer_response(transfer, lines) for transfer, lines in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )


@router.post(
    "/stockflow/transfers",
    response_model=TransferResponse,
    status_code=201,
    responses=_MUTATION_ERROR_RESPONSES,
)
def create_transfer(
    request: Request,
    payload: TransferCreateRequest,
    actor: Actor = Depends(require_actor),
    db=Depends(get_db),
):
    context, replay = begin_idempotent_request(request, db, payload.model_dump(mode="json"))
    if replay:
        return replay

    payment = None
    if payload.payment is not None:
        payment = PaymentBreakdown(
            cash_amount=payload.payment.cash_amount,
            transfer_amount=payload.payment.transfer_amount,
        )
    transfer, lines = TransferEngine(db).create_transfer(
        origin_store_id=payload.origin_store_id,
        destination_store_id=payload.destination_store_id,
        lines=[
            TransferLineInput(
                product_id=line.product_id,
                quantity=line.quantity,
                from_location=line.from_location,
                unit_price=line.unit_price,
            )
            for line in payload.lines
        ],
        actor=actor,
        description=payload.description,
        notes=payload.notes,
        payment=payment,
    )
    response = transfer_response(transfer, lines)
    response_body = response.model_dump(mode="json")
    if context:
        context.record_success(status_code=201, response_body=response_body)
    _record_audit(db, request, actor, "transfer.create", response.id, None, response_body)
    return response


@router.get("/stockflow/transfers/{transfer_id}", response_model=TransferResponse)
def get_transfer_detail(transfer_id: UUID, db=Depends(get_db)):
    transfer, lines = TransferEngine(db).get_transfer(transfer_id)
    return transfer_response(transfer, lines)


@router.post(
    "/stockflow/transfers/{transfer_id}/actions",
    response_model=TransferResponse | TransferCancelResponse,
    responses=_MUTATION_ERROR_RESPONSES,
)
def transfer_actions(
    transfer_id: UUID,
    request: Request,
    payload: TransferActionRequest,
    actor: Actor = Depends(require_actor),
    db=Depends(get_db),
):
    context, replay = begin_idempotent_request(request, db, payload.model_dump(mode="json"))
    if replay:
        return replay

    engine = TransferEngine(db)
    before_transfer, before_lines = engine.get_transfer(transfer_id)
    before = transfer_response(before_transfer, before_lines).model_dump(mode="json")

    action = payload.action
    metadata = None
    if action == "dispatch":
        transfer, lines = engine.dispatch_transfer(transfer_id, actor)
        response = transfer_response(transfer, lines)
        after = response.model_dump(mode="json")
    elif action == "receive":
        transfer, lines = engine.receive_transfer(
            transfer_id,
            [
                ReceivedItem(
                    item_id=item.item_id,
                    quantity_received=item.quantity_received,
                    note=item.note,
                    to_location=item.to_location,
                )
                for item in payload.items or []
            ],
            actor,
            to_location=payload.to_location,
        )
        response = transfer_response(transfer, lines)
        after = response.model_dump(mode="json")
    else:
        cancellation = engine.cancel_transfer(transfer_id, payload.reason or "", actor)
        response = TransferCancelResponse(
            success=True,
            total_refund=cancellation.total_refund,
            transfer=transfer_response(cancellation.transfer, cancellation.lines),
        )
        after = response.transfer.model_dump(mode="json")
        metadata = {"reason": payload.reason, "total_refund": format(cancellation.total_refund, "f")}

    response_body = response.model_dump(mode="json")
    if context:
        context.record_success(status_code=200, response_body=response_body)
    _record_audit(db, request, actor, f"transfer.{action}", _normalize_uuid(transfer_id), before, after, metadata)
    return response


@router.get("/stockflow/stores/{store_id}/receptions", response_model=PendingReceptionsResponse)
def pending_receptions(
    store_id: UUID,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    db=Depends(get_db),
):
    result = TransferEngine(db).pending_receptions(store_id, page=page, page_size=page_size)
    return PendingReceptionsResponse(
        store_id=str(store_id),
        items=[transfer_response(transfer, lines) for transfer, lines in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )
