from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field, PlainSerializer, WithJsonSchema


MoneyValue = Annotated[
    Decimal,
    Field(ge=0, max_digits=14, decimal_places=2),
    PlainSerializer(lambda value: format(value.quantize(Decimal("0.01")), "f"), return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": r"^\d{1,12}(?:\.\d{2})?$"}, mode="serialization"),
]

SubLocation = Literal["warehouse", "store"]


class StockRow(BaseModel):
    id: str
    product_id: str
    product_name: str | None = None
    store_id: str
    warehouse_qty: int
    store_qty: int
    total: int
    reserved_warehouse: int = 0
    reserved_store: int = 0
    created_at: datetime
    updated_at: datetime | None


class StockListResponse(BaseModel):
    rows: list[StockRow]
    total: int
    page: int
    page_size: int


class StockAdjustmentRequest(BaseModel):
    product_id: UUID
    store_id: UUID
    sub_location: SubLocation
    quantity: int = Field(ge=0)
    reason: str = Field(min_length=1, max_length=500)


class StockMoveRequest(BaseModel):
    product_id: UUID
    store_id: UUID
    from_location: SubLocation
    to_location: SubLocation
    quantity: int = Field(gt=0)
    note: str | None = None


class StockAdjustmentResult(BaseModel):
    product_id: str
    store_id: str
    sub_location: SubLocation
    previous: int
    current: int
    delta: int


class StockMutationResponse(BaseModel):
    adjustments: list[StockAdjustmentResult]
    record: StockRow
