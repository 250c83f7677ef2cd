# portal/services/account_service.py
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.errors import (
    AccountLocked,
    DuplicateUsername,
    InvalidCredentials,
    InvalidToken,
    NoOpRejected,
    NotFound,
    ValidationError,
)
from portal.core.security import CredentialStore, get_credential_store
from portal.core.tokens import (
    issue_access_token,
    issue_refresh_token,
    verify_refresh_token,
)
from portal.models.account import Account
from portal.schemas.user_schema import is_strong_password
from portal.services import session_ledger

logger = logging.getLogger(__name__)


async def get_account(db: AsyncSession, account_id: int) -> Account:
    account = await db.get(Account, account_id)
    if not account:
        raise NotFound("User not found")
    return account


async def get_account_by_name(db: AsyncSession, name: str) -> Account | None:
    res = await db.execute(select(Account).where(Account.name == name))
    return res.scalars().first()


async def is_username_available(db: AsyncSession, name: str) -> bool:
    return await get_account_by_name(db, name) is None


async def register_account(
    db: AsyncSession,
    name: str,
    password: str,
    email: str | None = None,
    question: str | None = None,
    answer: str | None = None,
    phone: str | None = None,
    store: CredentialStore | None = None,
) -> Account:
    """
    Insert a new account with zeroed game state. Uniqueness of the name is
    left to the unique index so two concurrent sign-ups cannot both win.
    """
    store = store or get_credential_store()
    account = Account(
        name=name,
        password=store.hash(password),
        email=email,
        question=question,
        answer=answer,
        phone=phone or "0",
        point=0,
        is_online=False,
        is_lock=False,
        token_version=0,
    )
    db.add(account)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Registration rejected, username taken: %s", name)
        raise DuplicateUsername()
    await db.refresh(account)
    logger.info("Account registered: id=%s name=%s", account.id, account.name)
    return account


async def authenticate(
    db: AsyncSession, name: str, password: str, store: CredentialStore | None = None
) -> Account:
    store = store or get_credential_store()
    account = await get_account_by_name(db, name)
    # same error whether the name or the password is wrong
    if not account or not store.verify(password, account.password):
        logger.info("Login failed for username=%s", name)
        raise InvalidCredentials()
    if account.is_lock:
        logger.warning("Login refused, account locked: id=%s", account.id)
        raise AccountLocked()
    return account


async def login(
    db: AsyncSession,
    name: str,
    password: str,
    client_ip: str,
    store: CredentialStore | None = None,
) -> dict:
    account = await authenticate(db, name, password, store)

    version = await session_ledger.advance_version(
        db, account.id, last_ip_login=client_ip
    )
    await db.refresh(account)

    tokens = {
        "access_token": issue_access_token(account.id, account.name),
        "refresh_token": issue_refresh_token(account.id, account.name, version),
    }
    logger.info("Login succeeded: id=%s ip=%s", account.id, client_ip)
    return {"user": account, **tokens}


async def logout(db: AsyncSession, account_id: int) -> int:
    version = await session_ledger.advance_version(db, account_id)
    logger.info("Logout: id=%s", account_id)
    return version


async def refresh_access_token(db: AsyncSession, refresh_token: str) -> str:
    payload = verify_refresh_token(refresh_token)
    current = await session_ledger.current_version(db, payload["sub"])
    if current is None or current != payload["tv"]:
        logger.info("Stale refresh token for account id=%s", payload["sub"])
        raise InvalidToken()
    return issue_access_token(payload["sub"], payload["username"])


async def change_password(
    db: AsyncSession,
    account_id: int,
    current_password: str,
    new_password: str,
    store: CredentialStore | None = None,
) -> dict:
    """
    Store the new hash and advance the token version in one UPDATE, which
    signs out every other session. Fresh tokens for the caller are returned.
    """
    store = store or get_credential_store()
    account = await get_account(db, account_id)
    if not store.verify(current_password, account.password):
        raise InvalidCredentials("Current password is incorrect")
    if new_password == current_password:
        raise NoOpRejected()
    if not is_strong_password(new_password):
        raise ValidationError("Password must contain at least one letter and one digit")

    version = await session_ledger.advance_version(
        db, account.id, password=store.hash(new_password)
    )
    logger.info("Password changed: id=%s", account.id)
    return {
        "access_token": issue_access_token(account.id, account.name),
        "refresh_token": issue_refresh_token(account.id, account.name, version),
    }
