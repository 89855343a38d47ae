from datetime import datetime

from pydantic import BaseModel

from app.stockflow.schemas.stock import MoneyValue


class SaleLineResponse(BaseModel):
    id: str
    position: int
    product_id: str
    product_name: str
    qty: int
    unit_price: MoneyValue
    line_total: MoneyValue


class PaymentResponse(BaseModel):
    id: str
    method: str
    amount: MoneyValue
    status: str
    cancelled_at: datetime | None
    cancelled_by: str | None
    cancelled_by_name: str | None
    cancellation_reason: str | None
    created_at: datetime


class SaleResponse(BaseModel):
    id: str
    invoice_number: int
    store_id: str
    buyer_store_id: str | None
    total: MoneyValue
    payment_method: str
    status: str
    created_by: str | None
    created_by_name: str | None
    cancelled_by: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime
    lines: list[SaleLineResponse]
    payments: list[PaymentResponse]
