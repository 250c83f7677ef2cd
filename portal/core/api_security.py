# portal/core/api_security.py
import hmac
import logging
import re

from fastapi import Request

from portal.core.config import settings
from portal.core.errors import AccessDenied, UnauthorizedAccess

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
BOT_USER_AGENT = re.compile(r"bot|crawler|spider|scraper", re.IGNORECASE)

_warned_no_key = False


def _key_ok(supplied: str | None, expected: str | None) -> bool:
    global _warned_no_key
    if not expected:
        if not _warned_no_key:
            logger.warning("INTERNAL_API_KEY not configured; API key check disabled")
            _warned_no_key = True
        return True
    if not supplied:
        return False
    return hmac.compare_digest(supplied.encode(), expected.encode())


def origin_allowed(origin: str | None, referer: str | None, allowed: list[str]) -> bool:
    if not allowed:
        return True
    if origin and any(origin.startswith(a) for a in allowed):
        return True
    return bool(referer) and any(referer.startswith(a) for a in allowed)


async def api_security(request: Request) -> None:
    """Internal API key, then Origin/Referer allow-list, then bot user agents."""
    headers = request.headers
    if not _key_ok(headers.get(API_KEY_HEADER), settings.INTERNAL_API_KEY):
        logger.info("Rejected %s: bad api key", request.url.path)
        raise UnauthorizedAccess()

    if not origin_allowed(headers.get("origin"), headers.get("referer"), settings.ALLOWED_ORIGINS):
        logger.info("Rejected %s: origin=%s", request.url.path, headers.get("origin"))
        raise AccessDenied("Invalid origin")

    if BOT_USER_AGENT.search(headers.get("user-agent", "")):
        logger.info("Rejected %s: bot user agent", request.url.path)
        raise AccessDenied()
