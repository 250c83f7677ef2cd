# portal/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    ENV: str = Field("development")

    DATABASE_URL: str
    DATABASE_URL_SYNC: str

    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10

    REDIS_URL: str | None = None

    JWT_PRIVATE_KEY_PATH: str | None = None
    JWT_PUBLIC_KEY_PATH: str | None = None
    JWT_ALGORITHM: str = Field("RS256")
    JWT_ISSUER: str = Field("tlbb-app")
    JWT_AUDIENCE: str = Field("tlbb-users")

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # "argon2" or "legacy_md5"; the legacy scheme shares hashes with the game server
    PASSWORD_SCHEME: str = Field("argon2")

    # Argon2 tuning (tune for your environment)
    ARGON2_TIME_COST: int = 2
    ARGON2_MEMORY_COST: int = 102400
    ARGON2_PARALLELISM: int = 8

    # Login / register throttling
    AUTH_RATE_LIMIT: int = 5
    AUTH_RATE_PERIOD_SECONDS: int = 15 * 60
    # CIDRs of reverse proxies whose X-Forwarded-For is trusted for throttling
    TRUSTED_PROXIES: list[str] = Field(default_factory=list)

    # Gate for routes the portal frontend calls server-to-server.
    # Unset INTERNAL_API_KEY or an empty ALLOWED_ORIGINS skips that check.
    INTERNAL_API_KEY: str | None = None
    ALLOWED_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "https://localhost:3000"]
    )

    # Manual bank-transfer top-up
    PAYMENT_SESSION_TTL_SECONDS: int = 600
    PAYMENT_MEMO_PREFIX: str = Field("TLTH")
    SILVER_FALLBACK_DIVISOR: int = 100

    QR_BANK_ID: str = Field("970422")
    QR_ACCOUNT_NO: str = Field("088888666660")
    QR_TEMPLATE: str = Field("compact2")
    QR_ACCOUNT_NAME: str = Field("THIEN LONG BAT BO")

    BANK_FEED_URL: str | None = None
    BANK_FEED_TIMEOUT_SECONDS: float = 8.0

    LOG_FILE: str = Field("logs/portal.log")
    LOG_LEVEL: str = Field("info")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


settings = Settings()
