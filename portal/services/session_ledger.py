# portal/services/session_ledger.py
"""
Per-account token version.

A refresh token is only honoured while the version stamped into it equals
``account.token_version``. Replacing the column therefore revokes every
refresh token issued before, with no grace period.
"""
from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.clock import utcnow
from portal.core.errors import NotFound
from portal.core.tokens import generate_token_version
from portal.models.account import Account


def next_version_expr(now_s: int | None = None):
    """
    Unix seconds, or one past the stored value when the clock has not moved
    beyond it. Evaluated by the database so concurrent writers never share a
    version.
    """
    if now_s is None:
        now_s = generate_token_version()
    return case(
        (Account.token_version >= now_s, Account.token_version + 1),
        else_=now_s,
    )


async def current_version(db: AsyncSession, account_id: int) -> int | None:
    res = await db.execute(select(Account.token_version).where(Account.id == account_id))
    return res.scalar_one_or_none()


async def advance_version(
    db: AsyncSession, account_id: int, commit: bool = True, now_s: int | None = None, **values
) -> int:
    """
    Stamp a fresh version in a single UPDATE ... RETURNING keyed by id. Extra
    column values (last login IP, new password hash) are written in the same
    statement.
    """
    res = await db.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(token_version=next_version_expr(now_s), date_modified=utcnow(), **values)
        .returning(Account.token_version)
        .execution_options(synchronize_session="fetch")
    )
    version = res.scalar_one_or_none()
    if version is None:
        await db.rollback()
        raise NotFound("Account not found")
    if commit:
        await db.commit()
    return version
