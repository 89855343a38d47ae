from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from app.stockflow.schemas.stock import MoneyValue, SubLocation


TransferStatus = Literal["pending", "in_transit", "received", "partially_received", "cancelled"]

_TRANSFER_CREATE_EXAMPLE = {
    "origin_store_id": "00000000-0000-0000-0000-000000000001",
    "destination_store_id": "6f1c2d8e-3a4b-4c5d-8e9f-0a1b2c3d4e5f",
    "description": "Weekly replenishment",
    "lines": [
        {
            "product_id": "2b9f0c4a-7d1e-4f3a-9c8b-5e6d7f8a9b0c",
            "quantity": 20,
            "from_location": "warehouse",
            "unit_price": "5000.00",
        }
    ],
    "payment": {"cash_amount": "60000.00", "transfer_amount": "40000.00"},
}


class TransferLineCreate(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    from_location: SubLocation = "warehouse"
    unit_price: MoneyValue | None = None


class TransferPayment(BaseModel):
    cash_amount: MoneyValue = Decimal("0.00")
    transfer_amount: MoneyValue = Decimal("0.00")


class TransferCreateRequest(BaseModel):
    origin_store_id: str
    destination_store_id: str
    lines: list[TransferLineCreate]
    description: str | None = Field(default=None, max_length=1000)
    notes: str | None = Field(default=None, max_length=2000)
    payment: TransferPayment | None = None

    model_config = {"json_schema_extra": {"example": _TRANSFER_CREATE_EXAMPLE}}


class TransferReceiveItem(BaseModel):
    item_id: str
    quantity_received: int = Field(ge=0)
    note: str | None = Field(default=None, max_length=1000)
    to_location: SubLocation | None = None


class TransferActionRequest(BaseModel):
    action: Literal["dispatch", "receive", "cancel"]
    items: list[TransferReceiveItem] | None = None
    to_location: SubLocation = "store"
    reason: str | None = Field(default=None, max_length=1000)


class TransferLineResponse(BaseModel):
    id: str
    position: int
    product_id: str
    product_name: str
    product_reference: str | None
    requested_qty: int
    from_location: SubLocation
    unit_price: MoneyValue
    received_qty: int | None
    received_location: SubLocation | None
    receiving_notes: str | None
    shortage_qty: int | None


class TransferResponse(BaseModel):
    id: str
    transfer_number: int
    origin_store_id: str
    destination_store_id: str
    status: TransferStatus
    description: str | None
    notes: str | None
    sale_id: str | None
    total_value: MoneyValue
    created_by: str | None
    created_by_name: str | None
    dispatched_by: str | None
    dispatched_at: datetime | None
    received_by: str | None
    received_by_name: str | None
    received_at: datetime | None
    cancelled_by: str | None
    cancelled_by_name: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime | None
    lines: list[TransferLineResponse]


class TransferCancelResponse(BaseModel):
    success: bool
    total_refund: MoneyValue
    transfer: TransferResponse


class TransferListResponse(BaseModel):
    items: list[TransferResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class PendingReceptionsResponse(BaseModel):
    store_id: str
    items: list[TransferResponse]
    total: int
    page: int
    page_size: int
    has_more: bool
