from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from app.stockflow.core.config import settings
from app.stockflow.core.context import Actor
from app.stockflow.core.error_catalog import DomainValidationError, ErrorCatalog, NotFoundError
from app.stockflow.core.logging import log_json
from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import Product, Store, Transfer, TransferLine
from app.stockflow.db.session import transaction
from app.stockflow.repos.transfers import TransferQueryFilters, TransferRepository
from app.stockflow.services.sales_ledger import PaymentBreakdown, SaleLineInput, SalesLedger
from app.stockflow.services.stock_ledger import StockLedger
from app.stockflow.services.transfer_state import (
    OPEN_STATUSES,
    SUB_LOCATIONS,
    TRANSFER_STATUSES,
    LineReceipt,
    can_transition,
    derive_status,
    receipt_state,
)

logger = logging.getLogger("stockflow.transfers")

DIRECTIONS = ("all", "sent", "received")


@dataclass(frozen=True)
class TransferLineInput:
    product_id: str
    quantity: int
    from_location: str = "warehouse"
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class ReceivedItem:
    item_id: str
    quantity_received: int
    note: str | None = None
    to_location: str | None = None


@dataclass
class TransferCancellation:
    transfer: Transfer
    lines: list[TransferLine]
    total_refund: Decimal


@dataclass
class TransferPage:
    items: list[tuple[Transfer, list[TransferLine]]]
    total: int
    page: int
    page_size: int
    has_more: bool = field(default=False)


def _as_uuid(value, *, field_name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise DomainValidationError(
            details={"message": f"{field_name} must be a valid UUID", field_name: value}
        ) from exc


def _require_location(value: str, *, field_name: str) -> str:
    if value not in SUB_LOCATIONS:
        raise DomainValidationError(
            details={"message": f"{field_name} must be warehouse or store", field_name: value}
        )
    return value


def line_receipts(lines: list[TransferLine]) -> list[LineReceipt]:
    return [
        LineReceipt(
            requested=line.requested_qty,
            state=receipt_state(line.received_qty, line.receiving_notes, line.received_location),
        )
        for line in lines
    ]


def status_for(transfer: Transfer, lines: list[TransferLine], *, cancelled: bool = False) -> str:
    return derive_status(
        line_receipts(lines),
        dispatched=transfer.dispatched_at is not None,
        cancelled=cancelled or transfer.cancelled_at is not None,
    )


class TransferEngine:
    """Creates, dispatches, receives and cancels stock transfers between stores.

    Every mutating operation runs as one transaction over the injected
    ledgers: either all stock, sale and transfer writes commit or none do.
    """

    def __init__(self, db, stock_ledger: StockLedger | None = None, sales_ledger: SalesLedger | None = None):
        self.db = db
        self.repo = TransferRepository(db)
        self.stock = stock_ledger or StockLedger(db)
        self.sales = sales_ledger or SalesLedger(db)

    def _load_store(self, store_id: uuid.UUID, *, field_name: str) -> Store:
        store = self.db.get(Store, store_id)
        if store is None:
            raise NotFoundError(ErrorCatalog.STORE_NOT_FOUND, details={field_name: str(store_id)})
        if not store.is_active:
            raise DomainValidationError(
                details={"message": f"{field_name} refers to an inactive store", field_name: str(store_id)}
            )
        return store

    def _lock_open_transfer(self, transfer_id, action: str) -> Transfer:
        transfer = self.repo.lock_transfer(_as_uuid(transfer_id, field_name="transfer_id"))
        if transfer is None:
            raise NotFoundError(ErrorCatalog.TRANSFER_NOT_FOUND, details={"transfer_id": str(transfer_id)})
        if not can_transition(transfer.status, action):
            raise DomainValidationError(
                ErrorCatalog.INVALID_TRANSFER_STATE,
                details={"transfer_id": str(transfer.id), "status": transfer.status, "action": action},
            )
        return transfer

    def _log(self, event: str, transfer: Transfer, actor: Actor, **extra) -> None:
        payload = {
            "event": event,
            "transfer_id": str(transfer.id),
            "transfer_number": transfer.transfer_number,
            "status": transfer.status,
            "actor_id": actor.id,
        }
        payload.update(extra)
        log_json(logger, payload)

    def create_transfer(
        self,
        *,
        origin_store_id,
        destination_store_id,
        lines: list[TransferLineInput],
        actor: Actor,
        description: str | None = None,
        notes: str | None = None,
        payment: PaymentBreakdown | None = None,
    ) -> tuple[Transfer, list[TransferLine]]:
        origin_id = _as_uuid(origin_store_id, field_name="origin_store_id")
        destination_id = _as_uuid(destination_store_id, field_name="destination_store_id")
        if origin_id == destination_id:
            raise DomainValidationError(
                details={"message": "origin_store_id and destination_store_id must differ"}
            )
        if not lines:
            raise DomainValidationError(details={"message": "lines must not be empty"})

        with transaction(self.db):
            self._load_store(origin_id, field_name="origin_store_id")
            self._load_store(destination_id, field_name="destination_store_id")

            prepared: list[tuple[TransferLineInput, uuid.UUID, Product, Decimal]] = []
            for line in lines:
                product_id = _as_uuid(line.product_id, field_name="product_id")
                if line.quantity <= 0:
                    raise DomainValidationError(
                        details={
                            "message": "quantity must be > 0",
                            "product_id": str(product_id),
                            "quantity": line.quantity,
                        }
                    )
                _require_location(line.from_location, field_name="from_location")
                product = self.db.get(Product, product_id)
                if product is None:
                    raise NotFoundError(ErrorCatalog.PRODUCT_NOT_FOUND, details={"product_id": str(product_id)})
                unit_price = Decimal(product.price) if line.unit_price is None else Decimal(line.unit_price)
                if unit_price < 0:
                    raise DomainValidationError(
                        details={"message": "unit_price must be >= 0", "product_id": str(product_id)}
                    )
                prepared.append((line, product_id, product, unit_price))

            self.stock.lock_rows((product_id, origin_id) for _, product_id, _, _ in prepared)
            for line, product_id, _, _ in sorted(prepared, key=lambda item: (str(item[1]), item[0].from_location)):
                self.stock.adjust_quantity(product_id, origin_id, line.from_location, -line.quantity)

            sale_id = None
            if payment is not None:
                sale = self.sales.create_sale(
                    store_id=origin_id,
                    buyer_store_id=destination_id,
                    lines=[
                        SaleLineInput(
                            product_id=str(product_id),
                            product_name=product.name,
                            qty=line.quantity,
                            unit_price=unit_price,
                        )
                        for line, product_id, product, unit_price in prepared
                    ],
                    payment=payment,
                    actor=actor,
                )
                sale_id = sale.id

            transfer = Transfer(
                transfer_number=self.repo.next_transfer_number(),
                origin_store_id=origin_id,
                destination_store_id=destination_id,
                description=description,
                notes=notes,
                sale_id=sale_id,
                created_by=actor.id,
                created_by_name=actor.name,
            )
            transfer_lines = [
                TransferLine(
                    position=index,
                    product_id=product_id,
                    product_name=product.name,
                    product_reference=product.reference,
                    requested_qty=line.quantity,
                    from_location=line.from_location,
                    unit_price=unit_price,
                )
                for index, (line, product_id, product, unit_price) in enumerate(prepared, start=1)
            ]
            transfer.status = status_for(transfer, transfer_lines)
            self.repo.add(transfer, transfer_lines)

        metrics.increment_transfer_action("create")
        self._log(
            "transfer.created",
            transfer,
            actor,
            origin_store_id=str(origin_id),
            destination_store_id=str(destination_id),
            lines=len(transfer_lines),
            units=sum(line.requested_qty for line in transfer_lines),
            sale_id=str(sale_id) if sale_id else None,
        )
        return transfer, self.repo.get_lines(transfer.id)

    def dispatch_transfer(self, transfer_id, actor: Actor) -> tuple[Transfer, list[TransferLine]]:
        with transaction(self.db):
            transfer = self._lock_open_transfer(transfer_id, "dispatch")
            lines = self.repo.get_lines(transfer.id)
            now = datetime.utcnow()
            transfer.dispatched_by = actor.id
            transfer.dispatched_at = now
            transfer.updated_at = now
            transfer.status = status_for(transfer, lines)

        metrics.increment_transfer_action("dispatch")
        self._log("transfer.dispatched", transfer, actor)
        return transfer, self.repo.get_lines(transfer.id)

    def receive_transfer(
        self,
        transfer_id,
        items: list[ReceivedItem],
        actor: Actor,
        *,
        to_location: str = "store",
    ) -> tuple[Transfer, list[TransferLine]]:
        _require_location(to_location, field_name="to_location")
        with transaction(self.db):
            transfer = self._lock_open_transfer(transfer_id, "receive")
            lines = self.repo.get_lines(transfer.id)
            lines_by_id = {str(line.id): line for line in lines}

            supplied: dict[str, ReceivedItem] = {}
            for item in items:
                key = str(_as_uuid(item.item_id, field_name="item_id"))
                line = lines_by_id.get(key)
                if line is None:
                    raise DomainValidationError(
                        details={"message": "item does not belong to this transfer", "item_id": key}
                    )
                if key in supplied:
                    raise DomainValidationError(details={"message": "item listed more than once", "item_id": key})
                if item.quantity_received < 0:
                    raise DomainValidationError(
                        details={"message": "quantity_received must be >= 0", "item_id": key}
                    )
                if item.quantity_received > line.requested_qty:
                    raise DomainValidationError(
                        ErrorCatalog.OVER_RECEIPT,
                        details={
                            "item_id": key,
                            "requested": line.requested_qty,
                            "received": item.quantity_received,
                        },
                    )
                if item.to_location is not None:
                    _require_location(item.to_location, field_name="to_location")
                supplied[key] = item

            # omitted lines are received in full at the request-level location
            plan: list[tuple[TransferLine, int, str, str | None]] = []
            for line in lines:
                item = supplied.get(str(line.id))
                if item is None:
                    plan.append((line, line.requested_qty, to_location, None))
                else:
                    plan.append((line, item.quantity_received, item.to_location or to_location, item.note))

            if sum(quantity for _, quantity, _, _ in plan) == 0:
                raise DomainValidationError(details={"message": "at least one unit must be received"})

            destination_id = transfer.destination_store_id
            self.stock.lock_rows((line.product_id, destination_id) for line, quantity, _, _ in plan if quantity)
            for line, quantity, location, _ in sorted(plan, key=lambda entry: (str(entry[0].product_id), entry[2])):
                if quantity:
                    self.stock.adjust_quantity(line.product_id, destination_id, location, quantity)

            for line, quantity, location, note in plan:
                line.received_qty = quantity
                line.received_location = location
                line.receiving_notes = note

            now = datetime.utcnow()
            transfer.received_by = actor.id
            transfer.received_by_name = actor.name
            transfer.received_at = now
            transfer.updated_at = now
            transfer.status = status_for(transfer, lines)
            received_units = sum(quantity for _, quantity, _, _ in plan)
            requested_units = sum(line.requested_qty for line in lines)

        metrics.increment_transfer_action("receive")
        self._log(
            "transfer.received",
            transfer,
            actor,
            received_units=received_units,
            shrinkage_units=requested_units - received_units,
        )
        return transfer, self.repo.get_lines(transfer.id)

    def cancel_transfer(self, transfer_id, reason: str, actor: Actor) -> TransferCancellation:
        reason = (reason or "").strip()
        if not reason:
            raise DomainValidationError(details={"message": "cancellation reason is required"})

        with transaction(self.db):
            transfer = self._lock_open_transfer(transfer_id, "cancel")
            lines = self.repo.get_lines(transfer.id)
            origin_id = transfer.origin_store_id

            self.stock.lock_rows((line.product_id, origin_id) for line in lines)
            for line in sorted(lines, key=lambda item: (str(item.product_id), item.from_location)):
                self.stock.adjust_quantity(line.product_id, origin_id, line.from_location, line.requested_qty)

            total_refund = Decimal("0.00")
            if transfer.sale_id is not None:
                total_refund = self.sales.cancel_sale(transfer.sale_id, reason, actor)

            now = datetime.utcnow()
            transfer.cancelled_by = actor.id
            transfer.cancelled_by_name = actor.name
            transfer.cancelled_at = now
            transfer.cancellation_reason = reason
            transfer.updated_at = now
            transfer.status = status_for(transfer, lines, cancelled=True)

        metrics.increment_transfer_action("cancel")
        self._log("transfer.cancelled", transfer, actor, total_refund=total_refund)
        return TransferCancellation(
            transfer=transfer,
            lines=self.repo.get_lines(transfer.id),
            total_refund=total_refund,
        )

    def get_transfer(self, transfer_id) -> tuple[Transfer, list[TransferLine]]:
        transfer = self.repo.get_transfer(_as_uuid(transfer_id, field_name="transfer_id"))
        if transfer is None:
            raise NotFoundError(ErrorCatalog.TRANSFER_NOT_FOUND, details={"transfer_id": str(transfer_id)})
        return transfer, self.repo.get_lines(transfer.id)

    def list_transfers(
        self,
        *,
        store_id=None,
        statuses: list[str] | None = None,
        direction: str = "all",
        page: int = 1,
        page_size: int | None = None,
    ) -> TransferPage:
        page_size = page_size or settings.TRANSFERS_DEFAULT_PAGE_SIZE
        if page < 1:
            raise DomainValidationError(details={"message": "page must be >= 1", "page": page})
        if page_size < 1 or page_size > settings.TRANSFERS_LIST_MAX_PAGE_SIZE:
            raise DomainValidationError(
                details={
                    "message": f"page_size must be between 1 and {settings.TRANSFERS_LIST_MAX_PAGE_SIZE}",
                    "page_size": page_size,
                }
            )
        if direction not in DIRECTIONS:
            raise DomainValidationError(details={"message": "direction must be all, sent or received"})
        unknown = [status for status in statuses or [] if status not in TRANSFER_STATUSES]
        if unknown:
            raise DomainValidationError(details={"message": "unknown status filter", "status": unknown})

        filters = TransferQueryFilters(
            store_id=_as_uuid(store_id, field_name="store_id") if store_id else None,
            direction=direction,
            statuses=tuple(statuses or ()),
        )
        rows, total = self.repo.list_transfers(filters, page=page, page_size=page_size)
        lines_by_transfer = self.repo.get_lines_for([row.id for row in rows])
        return TransferPage(
            items=[(row, lines_by_transfer.get(row.id, [])) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
            has_more=page * page_size < total,
        )

    def pending_receptions(self, store_id, *, page: int = 1, page_size: int | None = None) -> TransferPage:
        """Open transfers inbound to `store_id`, newest first."""
        store_uuid = _as_uuid(store_id, field_name="store_id")
        if self.db.get(Store, store_uuid) is None:
            raise NotFoundError(ErrorCatalog.STORE_NOT_FOUND, details={"store_id": str(store_uuid)})
        return self.list_transfers(
            store_id=store_uuid,
            statuses=sorted(OPEN_STATUSES),
            direction="received",
            page=page,
            page_size=page_size,
        )

