"""
Wallet ledger.

Every balance change is one conditional UPDATE on wallet_accounts plus one
appended WalletTransaction row, in the caller's unit of work:

    UPDATE wallet_accounts SET balance = balance - :amount
    WHERE owner_id = :owner AND balance >= :amount
    RETURNING balance

An empty RETURNING set means the funds were not there; nothing was written,
so there is nothing to undo. Concurrent debits serialize on the account row
and can never drive the balance below zero.

Functions here never commit. Routes commit through get_db(); the booking
flow commits through its ConsistencyStrategy.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.clock import utcnow
from ticketbay.core.config import get_settings
from ticketbay.core.exceptions import BookingValidationError, DuplicatePayment, InsufficientBalance, NotFound
from ticketbay.core.logging import get_logger
from ticketbay.core.metrics import duplicate_payments, record_wallet_operation
from ticketbay.core.references import WALLET_TX_PREFIX, generate_unique_reference
from ticketbay.models.wallet import PaymentOrder, TransactionType, WalletAccount, WalletTransaction
from ticketbay.services.notification_service import WalletCredited, WalletDebited, emit_after_commit
from ticketbay.services.payment_gateway import create_order

logger = get_logger(__name__)

CENT = Decimal("0.01")
_NO_SYNC = {"synchronize_session": False}


@dataclass
class WalletStats:
    total_credits: Decimal
    total_debits: Decimal
    total_refunds: Decimal
    transaction_count: int


def to_amount(value) -> Decimal:
    """Coerce to a positive 2-dp Decimal or raise BookingValidationError."""
    try:
        amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise BookingValidationError(f"Invalid amount: {value!r}") from exc
    if amount <= 0:
        raise BookingValidationError("Amount must be greater than zero")
    return amount


async def get_account(db: AsyncSession, owner_id: int) -> Optional[WalletAccount]:
    result = await db.execute(
        select(WalletAccount)
        .where(WalletAccount.owner_id == owner_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_open_account(db: AsyncSession, owner_id: int) -> WalletAccount:
    """Open the wallet on first use. Racing openers both end up with the same row."""
    account = await get_account(db, owner_id)
    if account is not None:
        return account

    dialect = db.get_bind().dialect.name
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    await db.execute(
        insert(WalletAccount)
        .values(
            owner_id=owner_id,
            balance=Decimal("0"),
            currency=get_settings().WALLET_CURRENCY,
            is_active=True,
        )
        .on_conflict_do_nothing(index_elements=["owner_id"])
    )
    logger.info("wallet_opened", owner_id=owner_id)
    return await get_account(db, owner_id)


async def _reference_exists(db: AsyncSession, reference: str) -> bool:
    result = await db.execute(
        select(WalletTransaction.id).where(WalletTransaction.reference_id == reference)
    )
    return result.first() is not None


async def _append(
    db: AsyncSession,
    account: WalletAccount,
    tx_type: TransactionType,
    amount: Decimal,
    balance_after: Decimal,
    description: str,
    booking_ref: Optional[str] = None,
    gateway_transaction_id: Optional[str] = None,
) -> WalletTransaction:
    reference = await generate_unique_reference(
        WALLET_TX_PREFIX,
        lambda candidate: _reference_exists(db, candidate),
        get_settings().REFERENCE_MAX_ATTEMPTS,
    )
    transaction = WalletTransaction(
        account_id=account.id,
        transaction_type=tx_type.value,
        amount=amount,
        balance_after=balance_after,
        description=description,
        status="completed",
        reference_id=reference,
        gateway_transaction_id=gateway_transaction_id,
        booking_ref=booking_ref,
    )
    db.add(transaction)
    await db.flush()
    await db.refresh(transaction)
    return transaction


async def debit(
    db: AsyncSession,
    owner_id: int,
    amount,
    description: str,
    booking_ref: Optional[str] = None,
) -> WalletTransaction:
    """Take `amount` from the owner's wallet, or raise InsufficientBalance with nothing written."""
    amount = to_amount(amount)
    now = utcnow()
    result = await db.execute(
        update(WalletAccount)
        .where(
            WalletAccount.owner_id == owner_id,
            WalletAccount.is_active.is_(True),
            WalletAccount.balance >= amount,
        )
        .values(balance=WalletAccount.balance - amount, last_transaction_date=now)
        .returning(WalletAccount.id, WalletAccount.balance)
        .execution_options(**_NO_SYNC)
    )
    row = result.first()
    if row is None:
        record_wallet_operation(TransactionType.DEBIT.value, ok=False)
        logger.info("wallet_debit_rejected", owner_id=owner_id, amount=str(amount))
        raise InsufficientBalance()

    account = await get_account(db, owner_id)
    transaction = await _append(
        db, account, TransactionType.DEBIT, amount, Decimal(row.balance), description, booking_ref=booking_ref
    )
    record_wallet_operation(TransactionType.DEBIT.value, ok=True)
    logger.info(
        "wallet_debited",
        owner_id=owner_id,
        amount=str(amount),
        balance_after=str(transaction.balance_after),
        reference_id=transaction.reference_id,
        booking_ref=booking_ref,
    )
    emit_after_commit(db, WalletDebited(owner_id, amount, transaction.balance_after, booking_ref))
    return transaction


async def credit(
    db: AsyncSession,
    owner_id: int,
    amount,
    description: str,
    tx_type: TransactionType = TransactionType.CREDIT,
    booking_ref: Optional[str] = None,
    gateway_transaction_id: Optional[str] = None,
) -> WalletTransaction:
    """Add `amount` to the owner's wallet, opening it if needed."""
    if tx_type == TransactionType.DEBIT:
        raise BookingValidationError("credit() cannot record a debit")
    amount = to_amount(amount)
    account = await get_or_open_account(db, owner_id)

    result = await db.execute(
        update(WalletAccount)
        .where(WalletAccount.id == account.id)
        .values(balance=WalletAccount.balance + amount, last_transaction_date=utcnow())
        .returning(WalletAccount.balance)
        .execution_options(**_NO_SYNC)
    )
    balance_after = Decimal(result.scalar_one())
    transaction = await _append(
        db,
        account,
        tx_type,
        amount,
        balance_after,
        description,
        booking_ref=booking_ref,
        gateway_transaction_id=gateway_transaction_id,
    )
    record_wallet_operation(tx_type.value, ok=True)
    logger.info(
        "wallet_credited",
        owner_id=owner_id,
        type=tx_type.value,
        amount=str(amount),
        balance_after=str(balance_after),
        reference_id=transaction.reference_id,
        booking_ref=booking_ref,
    )
    emit_after_commit(db, WalletCredited(owner_id, amount, balance_after, tx_type.value, booking_ref))
    return transaction


async def find_by_gateway_transaction(db: AsyncSession, gateway_transaction_id: str) -> Optional[WalletTransaction]:
    result = await db.execute(
        select(WalletTransaction).where(WalletTransaction.gateway_transaction_id == gateway_transaction_id)
    )
    return result.scalar_one_or_none()


async def record_external_top_up(
    db: AsyncSession,
    owner_id: int,
    amount,
    gateway_transaction_id: str,
    description: Optional[str] = None,
) -> WalletTransaction:
    """
    Credit a verified gateway payment exactly once.

    The pre-check catches ordinary replays; the unique constraint on
    gateway_transaction_id catches two confirmations racing past it. In both
    cases DuplicatePayment is raised and the caller's rollback leaves the
    balance untouched.
    """
    if not gateway_transaction_id:
        raise BookingValidationError("gateway_transaction_id is required")

    if await find_by_gateway_transaction(db, gateway_transaction_id) is not None:
        duplicate_payments.inc()
        logger.warning("duplicate_top_up", owner_id=owner_id, gateway_transaction_id=gateway_transaction_id)
        raise DuplicatePayment(gateway_transaction_id)

    try:
        return await credit(
            db,
            owner_id,
            amount,
            description or "Wallet top-up via payment gateway",
            tx_type=TransactionType.CREDIT,
            gateway_transaction_id=gateway_transaction_id,
        )
    except IntegrityError as exc:
        duplicate_payments.inc()
        logger.warning(
            "duplicate_top_up_race",
            owner_id=owner_id,
            gateway_transaction_id=gateway_transaction_id,
        )
        raise DuplicatePayment(gateway_transaction_id) from exc


async def open_top_up_order(db: AsyncSession, owner_id: int, amount) -> dict:
    """Create a gateway order and remember what it is for."""
    amount = to_amount(amount)
    order = create_order(amount, receipt=f"wallet_{owner_id}")
    db.add(PaymentOrder(order_id=order["id"], owner_id=owner_id, amount=amount, currency=order["currency"]))
    await db.flush()
    return order


async def confirm_top_up(
    db: AsyncSession,
    owner_id: int,
    order_id: str,
    payment_id: str,
    amount=None,
) -> WalletTransaction:
    """
    Credit a verified payment for the amount its order was opened for.

    The order is claimed first (created -> paid); a second confirmation of
    the same order matches no row and is a DuplicatePayment. A stated amount
    that differs from the order's is rejected, and the caller's rollback
    returns the order to `created`.
    """
    claimed = (
        await db.execute(
            update(PaymentOrder)
            .where(
                PaymentOrder.order_id == order_id,
                PaymentOrder.owner_id == owner_id,
                PaymentOrder.status == "created",
            )
            .values(status="paid", payment_id=payment_id, paid_at=utcnow())
            .returning(PaymentOrder.amount)
            .execution_options(**_NO_SYNC)
        )
    ).scalar_one_or_none()

    if claimed is None:
        existing = (
            await db.execute(
                select(PaymentOrder).where(PaymentOrder.order_id == order_id, PaymentOrder.owner_id == owner_id)
            )
        ).scalar_one_or_none()
        if existing is None:
            raise NotFound(f"Payment order {order_id} not found")
        duplicate_payments.inc()
        logger.warning("duplicate_top_up_order", owner_id=owner_id, order_id=order_id, payment_id=payment_id)
        raise DuplicatePayment(payment_id)

    order_amount = to_amount(claimed)
    if amount is not None and to_amount(amount) != order_amount:
        logger.warning(
            "top_up_amount_mismatch",
            owner_id=owner_id,
            order_id=order_id,
            expected=str(order_amount),
            stated=str(amount),
        )
        raise BookingValidationError(f"Amount does not match order {order_id}")

    return await record_external_top_up(
        db,
        owner_id,
        order_amount,
        gateway_transaction_id=payment_id,
        description=f"Wallet top-up via payment gateway ({order_id})",
    )


async def transfer(
    db: AsyncSession,
    from_owner_id: int,
    to_owner_id: int,
    amount,
    description: Optional[str] = None,
) -> tuple[WalletTransaction, WalletTransaction]:
    """Move money between two wallets in one unit of work."""
    if from_owner_id == to_owner_id:
        raise BookingValidationError("Cannot transfer to the same wallet")
    amount = to_amount(amount)
    note = description or "Wallet transfer"

    # Touch the recipient first so a missing wallet is opened before any row
    # is locked, then lock rows in owner_id order.
    await get_or_open_account(db, to_owner_id)
    if from_owner_id < to_owner_id:
        outgoing = await debit(db, from_owner_id, amount, f"{note} to user {to_owner_id}")
        incoming = await credit(db, to_owner_id, amount, f"{note} from user {from_owner_id}")
    else:
        incoming = await credit(db, to_owner_id, amount, f"{note} from user {from_owner_id}")
        outgoing = await debit(db, from_owner_id, amount, f"{note} to user {to_owner_id}")
    logger.info("wallet_transfer", from_owner_id=from_owner_id, to_owner_id=to_owner_id, amount=str(amount))
    return outgoing, incoming


async def get_wallet(db: AsyncSession, owner_id: int) -> WalletAccount:
    return await get_or_open_account(db, owner_id)


async def list_transactions(
    db: AsyncSession,
    owner_id: int,
    page: int = 1,
    page_size: int = 20,
    tx_type: Optional[str] = None,
) -> tuple[list[WalletTransaction], int]:
    account = await get_account(db, owner_id)
    if account is None:
        return [], 0

    query = select(WalletTransaction).where(WalletTransaction.account_id == account.id)
    count_query = select(func.count(WalletTransaction.id)).where(WalletTransaction.account_id == account.id)
    if tx_type:
        query = query.where(WalletTransaction.transaction_type == tx_type)
        count_query = count_query.where(WalletTransaction.transaction_type == tx_type)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(WalletTransaction.id.desc()).offset((page - 1) * page_size).limit(page_size)
    )
    return list(result.scalars().all()), total


async def wallet_stats(db: AsyncSession, owner_id: int) -> WalletStats:
    account = await get_account(db, owner_id)
    totals = {tx_type.value: Decimal("0") for tx_type in TransactionType}
    count = 0
    if account is not None:
        result = await db.execute(
            select(
                WalletTransaction.transaction_type,
                func.coalesce(func.sum(WalletTransaction.amount), 0),
                func.count(WalletTransaction.id),
            )
            .where(WalletTransaction.account_id == account.id)
            .group_by(WalletTransaction.transaction_type)
        )
        for tx_type, total, tx_count in result.all():
            totals[tx_type] = Decimal(str(total)).quantize(CENT)
            count += tx_count
    return WalletStats(
        total_credits=totals[TransactionType.CREDIT.value],
        total_debits=totals[TransactionType.DEBIT.value],
        total_refunds=totals[TransactionType.REFUND.value],
        transaction_count=count,
    )


async def replay_balance(db: AsyncSession, owner_id: int) -> Decimal:
    """Recompute the balance from the transaction log."""
    account = await get_account(db, owner_id)
    if account is None:
        raise NotFound("Wallet not found")
    result = await db.execute(
        select(WalletTransaction).where(WalletTransaction.account_id == account.id).order_by(WalletTransaction.id)
    )
    balance = Decimal("0")
    for transaction in result.scalars():
        balance += transaction.signed_amount
    return balance.quantize(CENT)
