"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (links in notification emails)
    FRONTEND_URL: str = "http://localhost:3000"

    # Gmail OAuth (shared mailbox, offline refresh token)
    GMAIL_CLIENT_ID: str = ""
    GMAIL_CLIENT_SECRET: str = ""
    GMAIL_REFRESH_TOKEN: str = ""
    GMAIL_SENDER_EMAIL: str = ""  # From address for case notifications

    # Gmail polling
    GMAIL_SYNC_ENABLED: bool = False  # Start the loop with the API process
    GMAIL_SYNC_INTERVAL_MINUTES: float = 5
    GMAIL_SYNC_MAX_EMAILS: int = 50
    GMAIL_SYNC_LABEL: str = "INBOX"
    GMAIL_SYNC_THROTTLE_SECONDS: float = 0.1

    # Dashboard
    DUE_SOON_DAYS: int = 3

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 120  # General API
    RATE_LIMIT_SYNC: int = 10  # Manual Gmail sync
    RATE_LIMIT_LOGIN: int = 10  # Password login attempts per client

    # Worker / CLI logging
    LOG_LEVEL: str = "INFO"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def gmail_configured(self) -> bool:
        return bool(
            self.GMAIL_CLIENT_ID and self.GMAIL_CLIENT_SECRET and self.GMAIL_REFRESH_TOKEN
        )

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
