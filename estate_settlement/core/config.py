from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BACKEND_URL = "http://localhost:5000"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Estate Settlement API"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/settlement.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Marketplace backend
    NEXT_PUBLIC_API_URL: str = ""
    NEXT_PUBLIC_BACKEND_URL: str = ""
    BACKEND_TIMEOUT_SECONDS: float = 30.0

    # SMTP
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_FROM_EMAIL: str = "accounts@example.com"
    SMTP_FROM_NAME: str = "OnlyIf Real Estate"

    # Retry policy
    EMAIL_MAX_ATTEMPTS: int = 3
    EMAIL_RETRY_BACKOFF_SECONDS: float = 1.0
    PAYMENT_RECORD_MAX_ATTEMPTS: int = 2  # one retry
    PAYMENT_RECORD_RETRY_BACKOFF_SECONDS: float = 0.5
    PAYMENT_RECORD_WORKER_MAX_ATTEMPTS: int = 5

    # Company account that receives commission payments
    COMPANY_BANK_NAME: str = "Commonwealth Bank of Australia"
    COMPANY_ACCOUNT_NAME: str = "OnlyIf Real Estate Pty Ltd"
    COMPANY_BSB: str = "062-001"
    COMPANY_ACCOUNT_NUMBER: str = "1234-5678"
    COMPANY_SWIFT: str = "CTBAAU2S"

    SETTLEMENT_CURRENCY: str = "AUD"

    ASSIGNMENT_CACHE_TTL_SECONDS: int = 300

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def backend_base_url(self) -> str:
        """Marketplace backend root, without the ``/api`` suffix."""
        if self.NEXT_PUBLIC_BACKEND_URL:
            return self.NEXT_PUBLIC_BACKEND_URL.rstrip("/")
        if self.NEXT_PUBLIC_API_URL:
            url = self.NEXT_PUBLIC_API_URL.rstrip("/")
            if url.endswith("/api"):
                url = url[: -len("/api")]
            if url:
                return url
        return DEFAULT_BACKEND_URL

    @property
    def api_base_url(self) -> str:
        """Base URL used for the admin payment-records API."""
        return (self.NEXT_PUBLIC_API_URL or DEFAULT_BACKEND_URL).rstrip("/")


settings = Settings()
