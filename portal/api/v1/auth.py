# portal/api/v1/auth.py
import logging

from fastapi import APIRouter, Cookie, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.api_security import api_security
from portal.core.auth import ACCESS_COOKIE, REFRESH_COOKIE, get_current_user
from portal.core.cookies import (
    clear_token_cookies,
    set_access_cookie,
    set_token_cookies,
)
from portal.core.errors import InvalidToken, PortalError
from portal.core.rate_limiter import auth_rate_limit
from portal.core.request_ip import get_client_ip
from portal.core.tokens import verify_access_token, verify_refresh_token
from portal.db.db import get_db
from portal.schemas.user_schema import (
    ChangePasswordIn,
    LoginIn,
    RegisterIn,
    UserOut,
)
from portal.services import account_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
async def login(
    payload: LoginIn,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    _: None = auth_rate_limit(),
):
    result = await account_service.login(
        db, payload.username, payload.password, get_client_ip(request)
    )
    set_token_cookies(response, result["access_token"], result["refresh_token"])
    return {
        "success": True,
        "message": "Login successful",
        "user": UserOut.model_validate(result["user"]),
    }


def _account_id_from_cookies(access_token: str | None, refresh_token: str | None) -> int:
    # an expired access token should not stop a user from signing out
    if access_token:
        try:
            return verify_access_token(access_token)["sub"]
        except InvalidToken:
            pass
    if refresh_token:
        return verify_refresh_token(refresh_token)["sub"]
    raise InvalidToken("Not authenticated")


@router.post("/logout")
async def logout(
    db: AsyncSession = Depends(get_db),
    access_token: str | None = Cookie(default=None, alias=ACCESS_COOKIE),
    refresh_token: str | None = Cookie(default=None, alias=REFRESH_COOKIE),
):
    """Always clears both cookies, whatever happens to the version bump."""
    status_code = 200
    body = {"success": True, "message": "Logged out"}
    try:
        account_id = _account_id_from_cookies(access_token, refresh_token)
        await account_service.logout(db, account_id)
    except PortalError as e:
        logger.info("Logout without a usable session: %s", e.message)
    except Exception:
        logger.exception("Logout failed")
        status_code = 500
        body = {"success": False, "error": "Internal server error"}

    response = JSONResponse(status_code=status_code, content=body)
    clear_token_cookies(response)
    return response


@router.post("/refresh")
async def refresh(
    response: Response,
    db: AsyncSession = Depends(get_db),
    refresh_token: str | None = Cookie(default=None, alias=REFRESH_COOKIE),
):
    if not refresh_token:
        raise InvalidToken("No refresh token provided")
    access = await account_service.refresh_access_token(db, refresh_token)
    set_access_cookie(response, access)
    return {"success": True, "message": "Token refreshed successfully"}


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordIn,
    response: Response,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    tokens = await account_service.change_password(
        db, user["sub"], payload.current_password, payload.new_password
    )
    set_token_cookies(response, tokens["access_token"], tokens["refresh_token"])
    return {"success": True, "message": "Password changed successfully"}


@router.post("/register", dependencies=[Depends(api_security)])
async def register(
    payload: RegisterIn,
    db: AsyncSession = Depends(get_db),
    _: None = auth_rate_limit(),
):
    await account_service.register_account(
        db,
        name=payload.username,
        password=payload.password,
        email=payload.email,
        question=payload.question,
        answer=payload.answer,
        phone=payload.phone,
    )
    return {"success": True, "message": "Registration successful"}


@router.get("/register", dependencies=[Depends(api_security)])
async def username_available(
    username: str = Query(..., min_length=1, max_length=20),
    db: AsyncSession = Depends(get_db),
):
    available = await account_service.is_username_available(db, username)
    return {
        "available": available,
        "message": "Username is available" if available else "Username already exists",
    }


@router.get("/me")
async def me(db: AsyncSession = Depends(get_db), user=Depends(get_current_user)):
    account = await account_service.get_account(db, user["sub"])
    return {"success": True, "user": UserOut.model_validate(account)}
