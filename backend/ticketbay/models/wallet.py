"""
Wallet ledger.

Key design decisions:
- WalletAccount.balance is a projection of the append-only WalletTransaction
  log; both change in the same unit of work
- balance >= 0 is enforced by the conditional debit UPDATE and by a CHECK
- gateway_transaction_id is unique when present; it is the idempotency key for
  external top-ups (NULLs do not collide)
- a top-up credits the amount of the PaymentOrder it was opened for, never a
  client-supplied figure
"""

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String

from ticketbay.db.base import Base, TimestampMixin


class TransactionType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    REFUND = "refund"


class WalletAccount(Base, TimestampMixin):
    __tablename__ = "wallet_accounts"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, nullable=False, unique=True)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")
    is_active = Column(Boolean, nullable=False, default=True)
    last_transaction_date = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (CheckConstraint("balance >= 0", name="check_wallet_balance_non_negative"),)

    def __repr__(self) -> str:
        return f"<WalletAccount(owner={self.owner_id}, balance={self.balance})>"


class WalletTransaction(Base, TimestampMixin):
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("wallet_accounts.id"), nullable=False)
    transaction_type = Column(String(10), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)
    description = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="completed")
    reference_id = Column(String(64), nullable=False, unique=True)
    gateway_transaction_id = Column(String(100), nullable=True, unique=True)
    booking_ref = Column(String(64), nullable=True, index=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_wallet_tx_amount_positive"),
        CheckConstraint("balance_after >= 0", name="check_wallet_tx_balance_non_negative"),
        CheckConstraint(
            "transaction_type IN ('credit', 'debit', 'refund')",
            name="check_wallet_tx_type",
        ),
        Index("ix_wallet_transactions_account", "account_id", "id"),
    )

    @property
    def signed_amount(self):
        if self.transaction_type == TransactionType.DEBIT.value:
            return -self.amount
        return self.amount

    def __repr__(self) -> str:
        return f"<WalletTransaction(ref={self.reference_id}, type={self.transaction_type}, amount={self.amount})>"


class PaymentOrder(Base, TimestampMixin):
    """
    A gateway order opened for a wallet top-up. The confirmed payment is
    credited for the amount recorded here, once: status moves
    created -> paid with a conditional UPDATE.
    """

    __tablename__ = "payment_orders"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(100), nullable=False, unique=True)
    owner_id = Column(Integer, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    status = Column(String(10), nullable=False, default="created")
    payment_id = Column(String(100), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_payment_order_amount_positive"),
        CheckConstraint("status IN ('created', 'paid')", name="check_payment_order_status"),
    )

    def __repr__(self) -> str:
        return f"<PaymentOrder(order={self.order_id}, owner={self.owner_id}, status={self.status})>"
