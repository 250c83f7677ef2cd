import os
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


def _write_test_keys() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    key_dir = Path(tempfile.mkdtemp(prefix="portal-keys-"))
    private_path = key_dir / "jwt-private.pem"
    public_path = key_dir / "jwt-public.pem"
    private_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return str(private_path), str(public_path)


PRIVATE_KEY_PATH, PUBLIC_KEY_PATH = _write_test_keys()

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_URL_SYNC"] = "sqlite:///:memory:"
os.environ["JWT_PRIVATE_KEY_PATH"] = PRIVATE_KEY_PATH
os.environ["JWT_PUBLIC_KEY_PATH"] = PUBLIC_KEY_PATH
os.environ["PASSWORD_SCHEME"] = "argon2"
os.environ["ARGON2_TIME_COST"] = "1"
os.environ["ARGON2_MEMORY_COST"] = "1024"
os.environ["ARGON2_PARALLELISM"] = "1"
os.environ["INTERNAL_API_KEY"] = "test-internal-key"
os.environ["ALLOWED_ORIGINS"] = '["http://portal.test"]'
os.environ.pop("TRUSTED_PROXIES", None)
os.environ.pop("REDIS_URL", None)
os.environ.pop("BANK_FEED_URL", None)

from portal.main import app  # noqa: E402
from portal.core.bank_feed import get_bank_feed  # noqa: E402
from portal.core.errors import ServiceUnavailable  # noqa: E402
from portal.core.rate_limiter import RateLimiter, get_rate_limiter  # noqa: E402
from portal.db.db import Base, get_db  # noqa: E402
from portal.schemas.payment import BankStatementEntry  # noqa: E402

PASSWORD = "secret123"
API_HEADERS = {"x-api-key": "test-internal-key", "origin": "http://portal.test"}


class FakeBankFeed:
    def __init__(self):
        self.entries: list[dict] = []
        self.unavailable = False
        self.calls = 0
        self.session = None
        self.fetched_inside_transaction: bool | None = None

    def add(self, desc: str, amount, ref_no: str = "FT0001"):
        self.entries.append(
            {"transactionDesc": desc, "creditAmount": str(amount), "refNo": ref_no}
        )

    async def fetch_entries(self) -> list[BankStatementEntry]:
        self.calls += 1
        if self.session is not None:
            self.fetched_inside_transaction = self.session.in_transaction()
        if self.unavailable:
            raise ServiceUnavailable()
        return [BankStatementEntry.model_validate(e) for e in self.entries]


class FakeRedis:
    def __init__(self):
        self.counters: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key):
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        future=True,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_session(async_engine):
    async_session_maker = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def bank_feed():
    return FakeBankFeed()


@pytest_asyncio.fixture(scope="function")
async def async_app(async_session, bank_feed):
    async def override_get_db():
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: RateLimiter(None)
    app.dependency_overrides[get_bank_feed] = lambda: bank_feed

    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(async_app):
    transport = ASGITransport(app=async_app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=API_HEADERS
    ) as ac:
        yield ac


def use_cookies(client: AsyncClient, **cookies) -> None:
    """Replace the client's cookie jar with exactly the given cookies."""
    client.cookies.clear()
    for name, value in cookies.items():
        client.cookies.set(name, value)


async def register(client: AsyncClient, username: str, password: str = PASSWORD, **extra):
    body = {"username": username, "password": password, "confirmPassword": password}
    body.update(extra)
    return await client.post("/auth/register", json=body)


async def login(client: AsyncClient, username: str, password: str = PASSWORD):
    return await client.post(
        "/auth/login", json={"username": username, "password": password}
    )


@pytest_asyncio.fixture
async def logged_in(client):
    """Registers and signs in 'alice'; the client carries the session cookies."""
    await register(client, "alice")
    resp = await login(client, "alice")
    assert resp.status_code == 200
    return resp.json()["user"]


def as_decimal(value) -> Decimal:
    return Decimal(str(value))
