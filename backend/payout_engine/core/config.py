from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "payout-engine"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/payouts.db"
    # Seconds a SQLite connection waits for a concurrent writer
    DATABASE_BUSY_TIMEOUT_SECONDS: float = 15.0
    REDIS_URL: str = "redis://localhost:6379"

    # Operator API key (empty disables the check for local development)
    OPERATOR_API_KEY: str = ""

    # Ledger
    DEFAULT_CURRENCY: str = "NGN"

    # Weekly payout anchor, UTC. Weekday follows datetime.weekday() (4 = Friday).
    PAYOUT_WEEKDAY: int = 4
    PAYOUT_HOUR_UTC: int = 13
    PAYOUT_MINUTE: int = 0

    # Scheduled worker runs use the live Paystack key only when enabled
    PAYOUT_LIVE_MODE: bool = False

    # Transfer provider concurrency per batch run
    PAYOUT_MAX_WORKERS: int = 4

    # Maximum writes committed in one settlement transaction
    SETTLEMENT_MAX_WRITES: int = 500

    # Paystack transfers
    paystack_test_secret_key: str = ""
    paystack_live_secret_key: str = ""
    paystack_base_url: str = "https://api.paystack.co"
    transfer_timeout_seconds: float = 30.0

    # SMTP
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_FROM_EMAIL: str = "payouts@example.com"
    SMTP_FROM_NAME: str = "Payouts"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"


settings = Settings()
