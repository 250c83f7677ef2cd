# portal/core/security.py
from functools import lru_cache

from passlib.hash import argon2, hex_md5

from portal.core.config import settings


class CredentialStore:
    """One-way password hashing used for the ``account.password`` column."""

    scheme: str = ""

    def hash(self, password: str) -> str:
        raise NotImplementedError

    def verify(self, password: str, digest: str | None) -> bool:
        raise NotImplementedError


class LegacyMD5CredentialStore(CredentialStore):
    """Unsalted hex MD5, byte-compatible with the game server's account table."""

    scheme = "legacy_md5"

    def hash(self, password: str) -> str:
        return hex_md5.hash(password)

    def verify(self, password: str, digest: str | None) -> bool:
        if not digest:
            return False
        try:
            return hex_md5.verify(password, digest.lower())
        except (ValueError, TypeError):
            return False


class Argon2CredentialStore(CredentialStore):
    scheme = "argon2"

    def __init__(
        self,
        time_cost: int = settings.ARGON2_TIME_COST,
        memory_cost: int = settings.ARGON2_MEMORY_COST,
        parallelism: int = settings.ARGON2_PARALLELISM,
    ):
        self._hasher = argon2.using(
            rounds=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, password: str) -> str:
        return self._hasher.hash(password)

    def verify(self, password: str, digest: str | None) -> bool:
        if not digest:
            return False
        try:
            return argon2.verify(password, digest)
        except (ValueError, TypeError):
            return False


CREDENTIAL_STORES = {
    LegacyMD5CredentialStore.scheme: LegacyMD5CredentialStore,
    Argon2CredentialStore.scheme: Argon2CredentialStore,
}


@lru_cache
def get_credential_store(scheme: str | None = None) -> CredentialStore:
    scheme = scheme or settings.PASSWORD_SCHEME
    try:
        return CREDENTIAL_STORES[scheme]()
    except KeyError:
        raise RuntimeError(f"Unknown PASSWORD_SCHEME: {scheme}")
