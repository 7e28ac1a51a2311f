"""
Wallet endpoints: balance, ledger history, gateway top-ups and transfers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.exceptions import PaymentVerificationFailed
from ticketbay.core.security import get_current_user_id
from ticketbay.db.session import get_db
from ticketbay.models.wallet import TransactionType
from ticketbay.schemas.wallet import (
    OrderCreate,
    OrderResponse,
    TopUpConfirm,
    TransferCreate,
    TransferResponse,
    WalletResponse,
    WalletStatsResponse,
    WalletTransactionListResponse,
    WalletTransactionResponse,
)
from ticketbay.services import wallet_service
from ticketbay.services.payment_gateway import PaymentAssertion, verify_payment

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("/", response_model=WalletResponse)
async def get_wallet_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the caller's wallet, opening an empty one on first use."""
    return await wallet_service.get_wallet(db, user_id)


@router.get("/transactions", response_model=WalletTransactionListResponse)
async def list_transactions_endpoint(
    tx_type: Optional[TransactionType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    transactions, total = await wallet_service.list_transactions(
        db, user_id, page, page_size, tx_type.value if tx_type else None
    )
    return WalletTransactionListResponse(
        transactions=[WalletTransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=WalletStatsResponse)
async def wallet_stats_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    account = await wallet_service.get_wallet(db, user_id)
    stats = await wallet_service.wallet_stats(db, user_id)
    return WalletStatsResponse(balance=account.balance, **stats.__dict__)


@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order_endpoint(
    body: OrderCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a gateway order the client pays against before confirming a top-up."""
    return await wallet_service.open_top_up_order(db, user_id, body.amount)


@router.post("/topups", response_model=WalletTransactionResponse, status_code=status.HTTP_201_CREATED)
async def confirm_top_up_endpoint(
    body: TopUpConfirm,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Credit a gateway payment after verifying its signature, for the amount
    its order was opened with. Confirming an order or payment twice is
    rejected with 409.
    """
    assertion = PaymentAssertion(order_id=body.order_id, payment_id=body.payment_id, signature=body.signature)
    if not verify_payment(assertion):
        raise PaymentVerificationFailed()
    return await wallet_service.confirm_top_up(db, user_id, body.order_id, body.payment_id, body.amount)


@router.post("/transfers", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
async def transfer_endpoint(
    body: TransferCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    outgoing, incoming = await wallet_service.transfer(db, user_id, body.to_user_id, body.amount, body.description)
    return TransferResponse(
        debit=WalletTransactionResponse.model_validate(outgoing),
        credit=WalletTransactionResponse.model_validate(incoming),
    )
