"""
Pydantic schemas for wallet request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class WalletResponse(BaseModel):
    owner_id: int
    balance: Decimal
    currency: str
    is_active: bool
    last_transaction_date: Optional[datetime]

    model_config = {"from_attributes": True}


class WalletTransactionResponse(BaseModel):
    id: int
    transaction_type: str
    amount: Decimal
    balance_after: Decimal
    description: str
    status: str
    reference_id: str
    gateway_transaction_id: Optional[str]
    booking_ref: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class WalletTransactionListResponse(BaseModel):
    transactions: list[WalletTransactionResponse]
    total: int
    page: int
    page_size: int


class WalletStatsResponse(BaseModel):
    balance: Decimal
    total_credits: Decimal
    total_debits: Decimal
    total_refunds: Decimal
    transaction_count: int


class OrderCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, le=100000, max_digits=12, decimal_places=2)


class OrderResponse(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: str
    status: str
    key_id: Optional[str] = None


class TopUpConfirm(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=100)
    payment_id: str = Field(..., min_length=1, max_length=100)
    signature: str = Field(..., min_length=1, max_length=256)
    amount: Optional[Decimal] = Field(None, gt=0, le=100000, max_digits=12, decimal_places=2)


class TransferCreate(BaseModel):
    to_user_id: int
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(None, max_length=200)


class TransferResponse(BaseModel):
    debit: WalletTransactionResponse
    credit: WalletTransactionResponse
