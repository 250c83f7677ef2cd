from fastapi import Cookie

from portal.core.errors import InvalidToken
from portal.core.tokens import verify_access_token

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


async def get_current_user(
    access_token: str | None = Cookie(default=None, alias=ACCESS_COOKIE),
) -> dict:
    """Claims of the access-token cookie. Stateless: the ledger is not consulted."""
    if not access_token:
        raise InvalidToken("Not authenticated")
    payload = verify_access_token(access_token)
    return {"sub": payload["sub"], "username": payload.get("username")}
