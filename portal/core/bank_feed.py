import logging

import httpx
from pydantic import ValidationError as SchemaError

from portal.core.config import settings
from portal.core.errors import ServiceUnavailable
from portal.schemas.payment import BankStatementEntry

logger = logging.getLogger(__name__)

# keys some statement gateways wrap the entry list in
ENVELOPE_KEYS = ("data", "transactionHistoryList", "transactions")


class BankFeed:
    """Read-only client for the bank statement endpoint polled on reconciliation."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url if url is not None else settings.BANK_FEED_URL
        self.timeout = timeout or settings.BANK_FEED_TIMEOUT_SECONDS
        self._transport = transport

    async def fetch_entries(self) -> list[BankStatementEntry]:
        if not self.url:
            logger.error("BANK_FEED_URL is not set")
            raise ServiceUnavailable()

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                r = await client.get(self.url)
                r.raise_for_status()
                body = r.json()
        except httpx.HTTPError as e:
            logger.error("Bank feed request failed: %r", e)
            raise ServiceUnavailable()
        except ValueError as e:
            logger.error("Bank feed returned invalid JSON: %s", e)
            raise ServiceUnavailable()

        return self.parse(body)

    @staticmethod
    def parse(body) -> list[BankStatementEntry]:
        if isinstance(body, dict):
            for key in ENVELOPE_KEYS:
                if isinstance(body.get(key), list):
                    body = body[key]
                    break
        if not isinstance(body, list):
            logger.error("Bank feed payload is not a list: %s", type(body).__name__)
            raise ServiceUnavailable()
        try:
            return [BankStatementEntry.model_validate(item) for item in body]
        except SchemaError as e:
            logger.error("Malformed bank feed entry: %s", e)
            raise ServiceUnavailable()


def get_bank_feed() -> BankFeed:
    return BankFeed()
