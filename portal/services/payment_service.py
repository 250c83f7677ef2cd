# portal/services/payment_service.py
import logging
import re
from datetime import timedelta
from decimal import Decimal
from urllib.parse import quote, urlencode

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.bank_feed import BankFeed
from portal.core.clock import as_utc, utcnow
from portal.core.config import settings
from portal.core.errors import (
    DuplicateTransactionCode,
    Forbidden,
    NotFound,
    ValidationError,
)
from portal.models.account import Account
from portal.models.billing import BillingPackage, PaymentStatus, PaymentTransaction
from portal.schemas.common import money
from portal.schemas.payment import (
    BankStatementEntry,
    PaymentSessionOut,
    PaymentVerifiedOut,
)

logger = logging.getLogger(__name__)

QR_BASE_URL = "https://img.vietqr.io/image"


def build_transfer_memo(username: str, transaction_code: str) -> str:
    parts = transaction_code.split(" ")
    suffix = parts[2] if len(parts) > 2 and parts[2] else transaction_code
    return f"{settings.PAYMENT_MEMO_PREFIX} {username} {suffix}"


def build_qr_url(username: str, amount: Decimal, transaction_code: str) -> str:
    query = urlencode(
        {
            "amount": money(amount),
            "addInfo": build_transfer_memo(username, transaction_code),
            "accountName": settings.QR_ACCOUNT_NAME,
        },
        quote_via=quote,
    )
    return (
        f"{QR_BASE_URL}/{settings.QR_BANK_ID}-{settings.QR_ACCOUNT_NO}-"
        f"{settings.QR_TEMPLATE}.png?{query}"
    )


def extract_search_code(transaction_code: str) -> str:
    """'TLTH alice 167469704' -> '167469704'; anything else is searched as-is."""
    pattern = rf"{re.escape(settings.PAYMENT_MEMO_PREFIX)}\s+\w+\s+(\d+)"
    m = re.search(pattern, transaction_code)
    return m.group(1) if m else transaction_code


def find_matching_entry(
    entries: list[BankStatementEntry], search_code: str, amount: Decimal
) -> BankStatementEntry | None:
    for entry in entries:
        if (
            search_code in entry.transaction_desc
            and entry.credit_amount > 0
            and entry.credit_amount == amount
        ):
            return entry
    return None


def _remaining_seconds(txn: PaymentTransaction) -> int:
    elapsed = int((utcnow() - as_utc(txn.created_at)).total_seconds())
    return max(0, settings.PAYMENT_SESSION_TTL_SECONDS - elapsed)


async def _mark_expired(db: AsyncSession, txn: PaymentTransaction) -> None:
    await db.execute(
        update(PaymentTransaction)
        .where(PaymentTransaction.transaction_id == txn.transaction_id)
        .where(PaymentTransaction.status == PaymentStatus.pending)
        .values(status=PaymentStatus.expired)
    )
    await db.commit()
    logger.info("Payment session expired: %s", txn.transaction_code)


async def create_session(
    db: AsyncSession,
    account: Account,
    package_id: str,
    amount: Decimal,
    transaction_code: str,
) -> PaymentSessionOut:
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be positive")

    now = utcnow()
    txn = PaymentTransaction(
        user_id=account.id,
        username=account.name,
        package=package_id,
        amount=amount,
        status=PaymentStatus.pending,
        transaction_code=transaction_code,
        qr_code_url=build_qr_url(account.name, amount, transaction_code),
        created_at=now,
        expires_at=now + timedelta(seconds=settings.PAYMENT_SESSION_TTL_SECONDS),
    )
    db.add(txn)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateTransactionCode()
    await db.refresh(txn)

    logger.info(
        "Payment session created: id=%s code=%s user=%s amount=%s",
        txn.transaction_id,
        txn.transaction_code,
        account.id,
        amount,
    )
    return PaymentSessionOut.model_validate(txn)


async def get_active_session(
    db: AsyncSession, account_id: int
) -> tuple[PaymentSessionOut | None, bool]:
    """
    Newest pending session and whether one was found stale and expired by
    this read. ``(None, False)`` means the user has no pending session.
    """
    res = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.user_id == account_id)
        .where(PaymentTransaction.status == PaymentStatus.pending)
        .order_by(
            PaymentTransaction.created_at.desc(),
            PaymentTransaction.transaction_id.desc(),
        )
        .limit(1)
    )
    txn = res.scalars().first()
    if not txn:
        return None, False

    remaining = _remaining_seconds(txn)
    if remaining <= 0:
        await _mark_expired(db, txn)
        return None, True

    out = PaymentSessionOut.model_validate(txn)
    out.remaining_time = remaining
    return out, False


async def _package_silver(db: AsyncSession, txn: PaymentTransaction) -> tuple[int, int]:
    res = await db.execute(
        select(BillingPackage)
        .where(BillingPackage.package_code == txn.package)
        .where(BillingPackage.is_active.is_(True))
    )
    package = res.scalars().first()
    if package:
        return package.silver_amount, package.bonus_silver
    # no configured package: 1 silver per SILVER_FALLBACK_DIVISOR currency units
    return int(Decimal(txn.amount) // settings.SILVER_FALLBACK_DIVISOR), 0


async def reconcile(
    db: AsyncSession, feed: BankFeed, account_id: int, transaction_code: str
) -> dict:
    """
    Match a pending top-up against the bank statement and credit silver once.

    Returns ``{"matched": True, "data": PaymentVerifiedOut}`` on success or
    ``{"matched": False, "debug": {...}}`` when the bank has not posted the
    transfer yet. The latter is safe to retry.
    """
    res = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.transaction_code == transaction_code)
        .where(PaymentTransaction.user_id == account_id)
        .where(PaymentTransaction.status == PaymentStatus.pending)
    )
    txn = res.scalars().first()
    if not txn:
        raise NotFound("Transaction not found or already processed")

    if utcnow() >= as_utc(txn.expires_at):
        await _mark_expired(db, txn)
        raise NotFound("Payment session expired")

    amount = Decimal(txn.amount)
    # end the read transaction so no pooled connection is held across the bank call
    await db.commit()
    entries = await feed.fetch_entries()
    search_code = extract_search_code(transaction_code)
    entry = find_matching_entry(entries, search_code, amount)

    if entry is None:
        logger.info(
            "Payment not in bank records yet: code=%s search=%s candidates=%d",
            transaction_code,
            search_code,
            len(entries),
        )
        return {
            "matched": False,
            "debug": {
                "searchCode": search_code,
                "expectedAmount": money(amount),
                "candidateCount": len(entries),
            },
        }

    verified_at = utcnow()
    # compare-and-swap on status: only one caller can move pending -> completed
    swapped = await db.execute(
        update(PaymentTransaction)
        .where(PaymentTransaction.transaction_id == txn.transaction_id)
        .where(PaymentTransaction.status == PaymentStatus.pending)
        .values(
            status=PaymentStatus.completed,
            verified_at=verified_at,
            bank_transaction_id=entry.ref_no,
        )
    )
    if swapped.rowcount != 1:
        await db.rollback()
        raise NotFound("Transaction not found or already processed")

    base_silver, bonus_silver = await _package_silver(db, txn)
    silver = base_silver + bonus_silver
    await db.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(point=Account.point + silver)
    )
    await db.commit()

    logger.info(
        "Payment verified: code=%s ref=%s user=%s silver=%d (base=%d bonus=%d)",
        transaction_code,
        entry.ref_no,
        account_id,
        silver,
        base_silver,
        bonus_silver,
    )
    return {
        "matched": True,
        "data": PaymentVerifiedOut(
            transaction_code=transaction_code,
            amount=entry.credit_amount,
            bank_ref_no=entry.ref_no,
            package=txn.package,
            silver_added=silver,
            base_silver=base_silver,
            bonus_silver=bonus_silver,
            verified_at=verified_at,
        ),
    }


async def delete_session(db: AsyncSession, account_id: int, transaction_code: str) -> bool:
    """Returns False when there was nothing to delete; that is still a success."""
    res = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.transaction_code == transaction_code)
        .where(PaymentTransaction.user_id == account_id)
    )
    txn = res.scalars().first()
    if not txn:
        return False
    if txn.status == PaymentStatus.processing:
        raise Forbidden("Cannot delete transaction being processed")

    await db.execute(
        delete(PaymentTransaction)
        .where(PaymentTransaction.transaction_id == txn.transaction_id)
        .where(PaymentTransaction.status != PaymentStatus.processing)
    )
    await db.commit()
    logger.info("Payment session deleted: code=%s user=%s", transaction_code, account_id)
    return True
