# portal/core/tokens.py
import logging
import os
import time
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path

from jose import jwt, JWTError

from portal.core.config import settings
from portal.core.errors import InvalidToken

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


def _load_key(path: str | None) -> str | None:
    if not path:
        return None
    p = Path(path)
    if p.exists():
        return p.read_text()
    return os.getenv(path)


@lru_cache
def _get_private_key() -> str:
    key = _load_key(settings.JWT_PRIVATE_KEY_PATH)
    if not key:
        raise RuntimeError("JWT private key not found. Set JWT_PRIVATE_KEY_PATH")
    return key


@lru_cache
def _get_public_key() -> str:
    key = _load_key(settings.JWT_PUBLIC_KEY_PATH)
    if not key:
        raise RuntimeError("JWT public key not found. Set JWT_PUBLIC_KEY_PATH")
    return key


def _encode(claims: dict, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "typ": token_type,
    }
    return jwt.encode(payload, _get_private_key(), algorithm=settings.JWT_ALGORITHM)


def _decode(token: str, expected_type: str) -> dict:
    """
    Verify signature, expiry, issuer, audience and token type.
    Every failure raises the same InvalidToken so callers cannot tell them apart.
    """
    if not token:
        raise InvalidToken()
    try:
        payload = jwt.decode(
            token,
            _get_public_key(),
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except JWTError as e:
        logger.debug("%s token rejected: %s", expected_type, e)
        raise InvalidToken()

    if payload.get("typ") != expected_type:
        logger.debug("token type mismatch: wanted %s", expected_type)
        raise InvalidToken()
    try:
        payload["sub"] = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidToken()
    return payload


def issue_access_token(account_id: int, name: str) -> str:
    return _encode(
        {"sub": str(account_id), "username": name},
        ACCESS,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def issue_refresh_token(account_id: int, name: str, version: int) -> str:
    return _encode(
        {"sub": str(account_id), "username": name, "tv": int(version)},
        REFRESH,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def verify_access_token(token: str) -> dict:
    return _decode(token, ACCESS)


def verify_refresh_token(token: str) -> dict:
    """Signature and expiry only; the token version is checked by the caller."""
    payload = _decode(token, REFRESH)
    if not isinstance(payload.get("tv"), int):
        raise InvalidToken()
    return payload


def generate_token_version() -> int:
    """Candidate version: unix seconds. The ledger bumps it past the stored value."""
    return int(time.time())
