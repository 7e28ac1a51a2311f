"""
Pydantic schemas for seat maps, holds and capacity counters.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class HoldRequest(BaseModel):
    unit_numbers: list[str] = Field(..., min_length=1, max_length=10)
    ttl_seconds: Optional[int] = Field(None, ge=60, le=900)


class ReleaseRequest(BaseModel):
    unit_numbers: list[str] = Field(..., min_length=1)


class HoldResponse(BaseModel):
    held: list[str]
    until: datetime


class ReleaseResponse(BaseModel):
    released: int


class SweepResponse(BaseModel):
    swept: int


class SeatResponse(BaseModel):
    unit_number: str
    row: str
    column: int
    unit_kind: str
    price: Decimal
    status: str
    held_until: Optional[datetime] = None
    held_by_me: bool = False


class SeatMapResponse(BaseModel):
    item_type: str
    item_id: int
    seats: list[SeatResponse]
    rows: list[str]
    total_seats: int
    available_seats: int


class CapacityResponse(BaseModel):
    item_id: int
    total_units: int
    available_units: int

    model_config = {"from_attributes": True}
