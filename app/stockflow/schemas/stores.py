from datetime import datetime

from pydantic import BaseModel, Field


class StoreCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str | None = Field(default=None, max_length=50)


class StoreUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, max_length=50)
    is_active: bool | None = None


class StoreItem(BaseModel):
    id: str
    name: str
    code: str | None
    is_main: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime | None


class StoreListResponse(BaseModel):
    stores: list[StoreItem]
    total: int
    limit: int
    offset: int
