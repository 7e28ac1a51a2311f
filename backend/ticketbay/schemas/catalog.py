"""
Pydantic schemas for catalog request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ticketbay.models.catalog import ItemType, SeatLayout


class CatalogItemCreate(BaseModel):
    item_type: ItemType
    title: str = Field(..., min_length=1, max_length=255)
    venue: Optional[str] = Field(None, max_length=255)
    event_date: datetime
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    total_units: int = Field(..., gt=0, le=100000)
    layout: Optional[SeatLayout] = None


class CapacityResize(BaseModel):
    total_units: int = Field(..., ge=0, le=100000)


class CatalogItemResponse(BaseModel):
    id: int
    item_type: str
    title: str
    venue: Optional[str]
    event_date: datetime
    unit_price: Decimal
    total_units: int
    layout: Optional[str]
    is_active: bool
    available_units: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CatalogListResponse(BaseModel):
    items: list[CatalogItemResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
