from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.stockflow.schemas.stock import MoneyValue


class ProductCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    reference: str | None = Field(default=None, max_length=100)
    price: MoneyValue = Decimal("0.00")
    cost: MoneyValue = Decimal("0.00")


class ProductItem(BaseModel):
    id: str
    name: str
    reference: str | None
    price: MoneyValue
    cost: MoneyValue
    created_at: datetime
    updated_at: datetime | None


class ProductListResponse(BaseModel):
    products: list[ProductItem]
    total: int
    limit: int
    offset: int
