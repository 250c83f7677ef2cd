from fastapi import Response

from portal.core.auth import ACCESS_COOKIE, REFRESH_COOKIE
from portal.core.config import settings


def _set(response: Response, key: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def set_access_cookie(response: Response, token: str) -> None:
    _set(response, ACCESS_COOKIE, token, settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60)


def set_token_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    set_access_cookie(response, access_token)
    _set(
        response,
        REFRESH_COOKIE,
        refresh_token,
        settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def clear_token_cookies(response: Response) -> None:
    for key in (ACCESS_COOKIE, REFRESH_COOKIE):
        _set(response, key, "", 0)
