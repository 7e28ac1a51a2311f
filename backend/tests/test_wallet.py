"""
Tests for the wallet ledger and its endpoints.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from ticketbay.core.exceptions import BookingValidationError, DuplicatePayment, InsufficientBalance
from ticketbay.models.wallet import TransactionType
from ticketbay.services import wallet_service
from ticketbay.services.payment_gateway import sign

from conftest import OTHER_USER_ID, USER_ID, wallet_balance

SECRET = "test_gateway_secret"


@pytest.mark.asyncio
async def test_debit_and_credit(db_session):
    credited = await wallet_service.credit(db_session, USER_ID, Decimal("250.00"), "Top-up")
    debited = await wallet_service.debit(db_session, USER_ID, Decimal("75.50"), "Purchase", booking_ref="BK1")
    await db_session.commit()

    assert credited.balance_after == Decimal("250.00")
    assert debited.balance_after == Decimal("174.50")
    assert debited.booking_ref == "BK1"
    assert debited.reference_id.startswith("WT")
    assert credited.reference_id != debited.reference_id

    account = await wallet_service.get_account(db_session, USER_ID)
    assert account.balance == Decimal("174.50")


@pytest.mark.asyncio
async def test_insufficient_debit_changes_nothing(db_session):
    await wallet_service.credit(db_session, USER_ID, Decimal("20.00"), "Top-up")
    await db_session.commit()

    with pytest.raises(InsufficientBalance):
        await wallet_service.debit(db_session, USER_ID, Decimal("20.01"), "Too much")
    await db_session.rollback()

    account = await wallet_service.get_account(db_session, USER_ID)
    assert account.balance == Decimal("20.00")
    transactions, total = await wallet_service.list_transactions(db_session, USER_ID)
    assert total == 1


@pytest.mark.asyncio
async def test_debit_without_wallet(db_session):
    with pytest.raises(InsufficientBalance):
        await wallet_service.debit(db_session, USER_ID, Decimal("1.00"), "No wallet yet")


@pytest.mark.asyncio
async def test_amount_must_be_positive(db_session):
    with pytest.raises(BookingValidationError):
        await wallet_service.credit(db_session, USER_ID, Decimal("0"), "Nothing")
    with pytest.raises(BookingValidationError):
        await wallet_service.debit(db_session, USER_ID, "-5", "Negative")


@pytest.mark.asyncio
async def test_replay_matches_balance(db_session):
    await wallet_service.credit(db_session, USER_ID, Decimal("500.00"), "Top-up")
    await wallet_service.debit(db_session, USER_ID, Decimal("440.00"), "Booking")
    await wallet_service.credit(
        db_session, USER_ID, Decimal("396.00"), "Refund", tx_type=TransactionType.REFUND
    )
    await db_session.commit()

    account = await wallet_service.get_account(db_session, USER_ID)
    assert account.balance == Decimal("456.00")
    assert await wallet_service.replay_balance(db_session, USER_ID) == account.balance

    stats = await wallet_service.wallet_stats(db_session, USER_ID)
    assert stats.total_credits == Decimal("500.00")
    assert stats.total_debits == Decimal("440.00")
    assert stats.total_refunds == Decimal("396.00")
    assert stats.transaction_count == 3


@pytest.mark.asyncio
async def test_duplicate_gateway_payment_service(db_session):
    await wallet_service.record_external_top_up(db_session, USER_ID, Decimal("100.00"), "pay_dup")
    await db_session.commit()

    with pytest.raises(DuplicatePayment):
        await wallet_service.record_external_top_up(db_session, USER_ID, Decimal("100.00"), "pay_dup")

    account = await wallet_service.get_account(db_session, USER_ID)
    assert account.balance == Decimal("100.00")


@pytest.mark.asyncio
async def test_transfer(db_session):
    await wallet_service.credit(db_session, USER_ID, Decimal("300.00"), "Top-up")
    outgoing, incoming = await wallet_service.transfer(db_session, USER_ID, OTHER_USER_ID, Decimal("120.00"))
    await db_session.commit()

    assert outgoing.transaction_type == "debit"
    assert incoming.transaction_type == "credit"
    assert (await wallet_service.get_account(db_session, USER_ID)).balance == Decimal("180.00")
    assert (await wallet_service.get_account(db_session, OTHER_USER_ID)).balance == Decimal("120.00")


@pytest.mark.asyncio
async def test_transfer_to_self_rejected(db_session):
    with pytest.raises(BookingValidationError):
        await wallet_service.transfer(db_session, USER_ID, USER_ID, Decimal("1.00"))


@pytest.mark.asyncio
async def test_get_wallet_opens_empty_account(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/wallet/", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["owner_id"] == USER_ID
    assert Decimal(str(data["balance"])) == Decimal("0")
    assert data["currency"] == "INR"


@pytest.mark.asyncio
async def test_top_up_flow(client: AsyncClient, auth_headers):
    """Create an order, pay it, confirm it; replaying the confirmation is rejected."""
    order = await client.post("/api/v1/wallet/orders", json={"amount": "250.00"}, headers=auth_headers)
    assert order.status_code == 201
    order_data = order.json()
    assert order_data["amount"] == 25000
    assert order_data["status"] == "created"
    assert order_data["id"].startswith("order_")

    confirm = {
        "order_id": order_data["id"],
        "payment_id": "pay_abc123",
        "signature": sign(order_data["id"], "pay_abc123", SECRET),
        "amount": "250.00",
    }
    first = await client.post("/api/v1/wallet/topups", json=confirm, headers=auth_headers)
    assert first.status_code == 201
    assert first.json()["gateway_transaction_id"] == "pay_abc123"
    assert Decimal(str(first.json()["balance_after"])) == Decimal("250.00")

    second = await client.post("/api/v1/wallet/topups", json=confirm, headers=auth_headers)
    assert second.status_code == 409
    assert second.json()["code"] == "duplicate_payment"

    assert await wallet_balance(client, auth_headers) == Decimal("250.00")


@pytest.mark.asyncio
async def test_top_up_bad_signature(client: AsyncClient, auth_headers):
    response = await client.post(
        "/api/v1/wallet/topups",
        json={"order_id": "order_1", "payment_id": "pay_1", "signature": "forged", "amount": "50.00"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "payment_verification_failed"
    assert await wallet_balance(client, auth_headers) == Decimal("0")


@pytest.mark.asyncio
async def test_transactions_and_stats_endpoints(client: AsyncClient, auth_headers, other_headers, fund_wallet):
    await fund_wallet(USER_ID, "500.00")
    transfer = await client.post(
        "/api/v1/wallet/transfers",
        json={"to_user_id": OTHER_USER_ID, "amount": "200.00", "description": "Dinner"},
        headers=auth_headers,
    )
    assert transfer.status_code == 201
    assert transfer.json()["debit"]["transaction_type"] == "debit"

    listing = await client.get("/api/v1/wallet/transactions", headers=auth_headers)
    assert listing.json()["total"] == 2
    assert [t["transaction_type"] for t in listing.json()["transactions"]] == ["debit", "credit"]

    debits = await client.get("/api/v1/wallet/transactions", params={"type": "debit"}, headers=auth_headers)
    assert debits.json()["total"] == 1

    stats = (await client.get("/api/v1/wallet/stats", headers=auth_headers)).json()
    assert Decimal(str(stats["balance"])) == Decimal("300.00")
    assert stats["transaction_count"] == 2

    assert await wallet_balance(client, other_headers) == Decimal("200.00")


@pytest.mark.asyncio
async def test_transfer_more_than_balance(client: AsyncClient, auth_headers, fund_wallet):
    await fund_wallet(USER_ID, "50.00")
    response = await client.post(
        "/api/v1/wallet/transfers",
        json={"to_user_id": OTHER_USER_ID, "amount": "60.00"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert await wallet_balance(client, auth_headers) == Decimal("50.00")


async def _open_order(client: AsyncClient, headers: dict, amount: str) -> str:
    response = await client.post("/api/v1/wallet/orders", json={"amount": amount}, headers=headers)
    assert response.status_code == 201
    return response.json()["id"]


def _confirmation(order_id: str, payment_id: str, amount=None) -> dict:
    body = {"order_id": order_id, "payment_id": payment_id, "signature": sign(order_id, payment_id, SECRET)}
    if amount is not None:
        body["amount"] = amount
    return body


@pytest.mark.asyncio
async def test_top_up_credits_order_amount(client: AsyncClient, auth_headers):
    """A confirmation without an amount is credited what the order was opened for."""
    order_id = await _open_order(client, auth_headers, "120.00")
    response = await client.post("/api/v1/wallet/topups", json=_confirmation(order_id, "pay_o1"), headers=auth_headers)
    assert response.status_code == 201
    assert Decimal(str(response.json()["amount"])) == Decimal("120.00")
    assert await wallet_balance(client, auth_headers) == Decimal("120.00")


@pytest.mark.asyncio
async def test_top_up_amount_must_match_order(client: AsyncClient, auth_headers):
    order_id = await _open_order(client, auth_headers, "10.00")

    inflated = await client.post(
        "/api/v1/wallet/topups", json=_confirmation(order_id, "pay_o2", "10000.00"), headers=auth_headers
    )
    assert inflated.status_code == 422
    assert await wallet_balance(client, auth_headers) == Decimal("0")

    # The rejected attempt left the order open.
    honest = await client.post(
        "/api/v1/wallet/topups", json=_confirmation(order_id, "pay_o2", "10.00"), headers=auth_headers
    )
    assert honest.status_code == 201
    assert await wallet_balance(client, auth_headers) == Decimal("10.00")


@pytest.mark.asyncio
async def test_order_is_credited_once(client: AsyncClient, auth_headers):
    """A second payment against an already paid order is a duplicate."""
    order_id = await _open_order(client, auth_headers, "40.00")
    first = await client.post("/api/v1/wallet/topups", json=_confirmation(order_id, "pay_o3"), headers=auth_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/wallet/topups", json=_confirmation(order_id, "pay_o4"), headers=auth_headers)
    assert second.status_code == 409
    assert second.json()["code"] == "duplicate_payment"
    assert await wallet_balance(client, auth_headers) == Decimal("40.00")


@pytest.mark.asyncio
async def test_top_up_against_unknown_or_foreign_order(client: AsyncClient, auth_headers, other_headers):
    unknown = await client.post(
        "/api/v1/wallet/topups", json=_confirmation("order_missing", "pay_o5"), headers=auth_headers
    )
    assert unknown.status_code == 404

    order_id = await _open_order(client, other_headers, "75.00")
    foreign = await client.post("/api/v1/wallet/topups", json=_confirmation(order_id, "pay_o6"), headers=auth_headers)
    assert foreign.status_code == 404
    assert await wallet_balance(client, auth_headers) == Decimal("0")
