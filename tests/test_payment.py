from datetime import timedelta
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import select, update

from portal.core.clock import utcnow
from portal.models.account import Account
from portal.models.billing import BillingPackage, PaymentStatus, PaymentTransaction

from conftest import as_decimal, register, login

pytestmark = pytest.mark.asyncio

CODE = "TLTH alice 167469704"


async def _create(client, code=CODE, amount=100000, package="GOI100K"):
    return await client.post(
        "/payment/create",
        json={"packageId": package, "amount": amount, "transactionCode": code},
    )


async def _verify(client, code=CODE):
    return await client.post("/payment/verify", json={"transactionCode": code})


async def _status(session, code=CODE) -> PaymentStatus | None:
    res = await session.execute(
        select(PaymentTransaction.status).where(
            PaymentTransaction.transaction_code == code
        )
    )
    return res.scalar_one_or_none()


async def _silver(session, name="alice") -> int:
    res = await session.execute(select(Account.point).where(Account.name == name))
    return res.scalar_one()


async def _age(session, seconds: int, code=CODE):
    created = utcnow() - timedelta(seconds=seconds)
    await session.execute(
        update(PaymentTransaction)
        .where(PaymentTransaction.transaction_code == code)
        .values(created_at=created, expires_at=created + timedelta(seconds=600))
    )
    await session.commit()


async def test_create_session(client, logged_in):
    resp = await _create(client)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["transactionCode"] == CODE
    assert data["status"] == "pending"
    assert data["amount"] == 100000
    assert data["transactionId"] > 0

    qr = urlparse(data["qrCodeUrl"])
    assert qr.netloc == "img.vietqr.io"
    assert qr.path == "/image/970422-088888666660-compact2.png"
    query = parse_qs(qr.query)
    assert query["amount"] == ["100000"]
    assert query["addInfo"] == ["TLTH alice 167469704"]


async def test_create_requires_login(client):
    resp = await _create(client)
    assert resp.status_code == 401


@pytest.mark.parametrize("amount", [0, -5])
async def test_create_rejects_non_positive_amount(client, logged_in, amount):
    resp = await _create(client, amount=amount)
    assert resp.status_code == 400


async def test_duplicate_transaction_code(client, logged_in):
    assert (await _create(client)).status_code == 200
    resp = await _create(client)
    assert resp.status_code == 409
    assert resp.json()["error"] == "Transaction code already exists"


async def test_active_session_reports_remaining_time(client, logged_in, async_session):
    await _create(client)
    await _age(async_session, 120)

    resp = await client.get("/payment/session")
    data = resp.json()["data"]
    assert data["transactionCode"] == CODE
    assert 478 <= data["remainingTime"] <= 480


async def test_no_active_session(client, logged_in):
    resp = await client.get("/payment/session")
    assert resp.status_code == 200
    assert resp.json()["data"] is None
    assert resp.json()["message"] == "No active payment session found"


@pytest.mark.parametrize("age", [600, 601, 3600])
async def test_session_expires_lazily(client, logged_in, async_session, age):
    await _create(client)
    await _age(async_session, age)

    resp = await client.get("/payment/session")
    assert resp.json()["message"] == "Payment session expired"
    assert await _status(async_session) == PaymentStatus.expired

    again = await client.get("/payment/session")
    assert again.json()["message"] == "No active payment session found"
    assert await _status(async_session) == PaymentStatus.expired


async def test_newest_pending_session_wins(client, logged_in, async_session):
    await _create(client, code="TLTH alice 111")
    await _age(async_session, 300, code="TLTH alice 111")
    await _create(client, code="TLTH alice 222")

    data = (await client.get("/payment/session")).json()["data"]
    assert data["transactionCode"] == "TLTH alice 222"


async def test_reconcile_credits_package_silver(client, logged_in, async_session, bank_feed):
    async_session.add(
        BillingPackage(
            package_code="GOI100K",
            package_name="100K",
            silver_amount=1000,
            bonus_silver=50,
            price_vnd=100000,
        )
    )
    await async_session.commit()
    await _create(client)
    bank_feed.add("TLTH alice 167469704 FT2629", "100000", ref_no="FT26290123")

    resp = await _verify(client)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["bankRefNo"] == "FT26290123"
    assert data["silverAdded"] == 1050
    assert data["baseSilver"] == 1000
    assert data["bonusSilver"] == 50

    assert await _status(async_session) == PaymentStatus.completed
    assert await _silver(async_session) == 1050


async def test_reconcile_fallback_silver_without_package(client, logged_in, async_session, bank_feed):
    await _create(client, package="UNKNOWN")
    bank_feed.add("TLTH alice 167469704", "100000")

    data = (await _verify(client)).json()["data"]
    assert data["silverAdded"] == 1000
    assert data["bonusSilver"] == 0
    assert await _silver(async_session) == 1000


async def test_reconcile_amount_must_match_exactly(client, logged_in, async_session, bank_feed):
    await _create(client)
    bank_feed.add("TLTH alice 167469704", "99999")

    resp = await _verify(client)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Payment not found in bank records"
    assert body["debug"] == {
        "searchCode": "167469704",
        "expectedAmount": 100000,
        "candidateCount": 1,
    }
    assert await _status(async_session) == PaymentStatus.pending
    assert await _silver(async_session) == 0


async def test_reconcile_never_credits_twice(client, logged_in, async_session, bank_feed):
    await _create(client)
    bank_feed.add("TLTH alice 167469704", "100000")

    assert (await _verify(client)).json()["success"] is True
    second = await _verify(client)
    assert second.status_code == 404
    assert await _silver(async_session) == 1000
    assert bank_feed.calls == 1


async def test_reconcile_other_users_transaction(client, logged_in, bank_feed):
    await _create(client)
    bank_feed.add("TLTH alice 167469704", "100000")

    client.cookies.clear()
    await register(client, "mallory")
    await login(client, "mallory")
    resp = await _verify(client)
    assert resp.status_code == 404


async def test_reconcile_after_ttl_expires_session(client, logged_in, async_session, bank_feed):
    await _create(client)
    await _age(async_session, 601)
    bank_feed.add("TLTH alice 167469704", "100000")

    resp = await _verify(client)
    assert resp.status_code == 404
    assert await _status(async_session) == PaymentStatus.expired
    assert bank_feed.calls == 0
    assert await _silver(async_session) == 0


async def test_reconcile_bank_unavailable(client, logged_in, async_session, bank_feed):
    await _create(client)
    bank_feed.unavailable = True

    resp = await _verify(client)
    assert resp.status_code == 500
    assert resp.json()["success"] is False
    assert await _status(async_session) == PaymentStatus.pending


async def test_delete_session_is_idempotent(client, logged_in, async_session):
    await _create(client)
    first = await client.delete(f"/payment/delete/{CODE}")
    assert first.status_code == 200
    assert await _status(async_session) is None

    second = await client.delete(f"/payment/delete/{CODE}")
    assert second.status_code == 200
    assert second.json()["success"] is True


async def test_delete_processing_session_refused(client, logged_in, async_session):
    await _create(client)
    await async_session.execute(
        update(PaymentTransaction).values(status=PaymentStatus.processing)
    )
    await async_session.commit()

    resp = await client.delete(f"/payment/delete/{CODE}")
    assert resp.status_code == 400
    assert await _status(async_session) == PaymentStatus.processing


async def test_billing_packages(client, async_session):
    async_session.add_all(
        [
            BillingPackage(package_code="B", package_name="Big", silver_amount=5000,
                           bonus_silver=500, price_vnd=500000, sort_order=2, is_popular=True),
            BillingPackage(package_code="S", package_name="Small", silver_amount=100,
                           price_vnd=10000, sort_order=1),
            BillingPackage(package_code="OLD", package_name="Retired", silver_amount=1,
                           price_vnd=1, sort_order=0, is_active=False),
        ]
    )
    await async_session.commit()

    body = (await client.get("/billing/packages")).json()
    assert body["total"] == 2
    assert [p["id"] for p in body["data"]] == ["S", "B"]
    assert body["data"][1]["popular"] is True
    assert body["data"][1]["bonus"] == 500
    assert as_decimal(body["data"][1]["price"]) == Decimal("500000")


async def test_bank_call_runs_outside_a_db_transaction(client, logged_in, async_session, bank_feed):
    await _create(client)
    bank_feed.add("TLTH alice 167469704", "100000")
    bank_feed.session = async_session

    assert (await _verify(client)).json()["success"] is True
    assert bank_feed.fetched_inside_transaction is False
