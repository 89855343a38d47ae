from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from app.stockflow.core.context import Actor
from app.stockflow.core.error_catalog import DomainValidationError, ErrorCatalog, NotFoundError
from app.stockflow.core.logging import log_json
from app.stockflow.db.models import Payment, Sale, SaleLine
from app.stockflow.repos.sales import SaleRepository
from app.stockflow.services.transfer_state import payment_method_for, payments_reconcile

logger = logging.getLogger("stockflow.sales")

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class SaleLineInput:
    product_id: str
    product_name: str
    qty: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price * self.qty).quantize(_CENTS)


@dataclass(frozen=True)
class PaymentBreakdown:
    cash_amount: Decimal = Decimal("0")
    transfer_amount: Decimal = Decimal("0")

    def components(self) -> list[tuple[str, Decimal]]:
        return [
            (method, amount.quantize(_CENTS))
            for method, amount in (("cash", self.cash_amount), ("transfer", self.transfer_amount))
            if amount > 0
        ]


class SalesLedger:
    """Sales and payment records backing priced inter-store transfers."""

    def __init__(self, db):
        self.db = db
        self.repo = SaleRepository(db)

    def create_sale(
        self,
        *,
        store_id,
        buyer_store_id,
        lines: list[SaleLineInput],
        payment: PaymentBreakdown,
        actor: Actor,
    ) -> Sale:
        if not lines:
            raise DomainValidationError(details={"message": "sale lines must not be empty"})
        if payment.cash_amount < 0 or payment.transfer_amount < 0:
            raise DomainValidationError(details={"message": "payment amounts must be >= 0"})
        total = sum((line.line_total for line in lines), Decimal("0")).quantize(_CENTS)
        components = payment.components()
        if not payments_reconcile(total, [amount for _, amount in components]):
            raise DomainValidationError(
                ErrorCatalog.PAYMENT_MISMATCH,
                details={
                    "total": total,
                    "paid": sum((amount for _, amount in components), Decimal("0")),
                    "cash_amount": payment.cash_amount,
                    "transfer_amount": payment.transfer_amount,
                },
            )

        sale = Sale(
            invoice_number=self.repo.next_invoice_number(),
            store_id=store_id,
            buyer_store_id=buyer_store_id,
            total=total,
            payment_method=payment_method_for(payment.cash_amount, payment.transfer_amount),
            status="completed",
            created_by=actor.id,
            created_by_name=actor.name,
        )
        sale_lines = [
            SaleLine(
                position=index,
                product_id=line.product_id,
                product_name=line.product_name,
                qty=line.qty,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for index, line in enumerate(lines, start=1)
        ]
        payments = [Payment(method=method, amount=amount, status="active") for method, amount in components]
        self.repo.add(sale, sale_lines, payments)
        log_json(
            logger,
            {
                "event": "sale.created",
                "sale_id": str(sale.id),
                "invoice_number": sale.invoice_number,
                "total": total,
                "payment_method": sale.payment_method,
            },
        )
        return sale

    def cancel_sale(self, sale_id, reason: str, actor: Actor) -> Decimal:
        sale = self.repo.lock_sale(sale_id)
        if sale is None:
            raise NotFoundError(ErrorCatalog.SALE_NOT_FOUND, details={"sale_id": str(sale_id)})
        if sale.status == "cancelled":
            raise DomainValidationError(details={"message": "sale is already cancelled", "sale_id": str(sale_id)})

        now = datetime.utcnow()
        refund = Decimal("0")
        for payment in self.repo.get_payments(sale.id, active_only=True, lock=True):
            refund += Decimal(payment.amount)
            payment.status = "cancelled"
            payment.cancelled_at = now
            payment.cancelled_by = actor.id
            payment.cancelled_by_name = actor.name
            payment.cancellation_reason = reason

        sale.status = "cancelled"
        sale.cancelled_at = now
        sale.cancelled_by = actor.id
        sale.cancelled_by_name = actor.name
        sale.cancellation_reason = reason
        sale.updated_at = now
        self.db.flush()
        log_json(logger, {"event": "sale.cancelled", "sale_id": str(sale.id), "refund": refund})
        return refund.quantize(_CENTS)

    def get_sale(self, sale_id) -> Sale:
        sale = self.repo.get_sale(sale_id)
        if sale is None:
            raise NotFoundError(ErrorCatalog.SALE_NOT_FOUND, details={"sale_id": str(sale_id)})
        return sale
