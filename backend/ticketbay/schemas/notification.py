"""
Pydantic schemas for in-app notifications.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    kind: str
    booking_reference: Optional[str]
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
