"""Application configuration with environment variables."""

from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.1.0"

    # Database
    DATABASE_URL: str = "sqlite:///./formflow.db"

    # HMAC key for password unlock tokens
    SECRET_KEY: str = "change-this-in-production"

    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Submission lifecycle
    EDIT_WINDOW_MINUTES: int = 10  # Resubmissions from the same fingerprint amend
    REVIEW_WINDOW_SECONDS: int = 10  # Respondent-side countdown before commit
    ACTIVITY_PAGE_SIZE: int = 50

    # Respondent cookies
    SUBMITTED_MARKER_MAX_AGE_DAYS: int = 365
    UNLOCK_MAX_AGE_HOURS: int = 12

    # Rate Limiting (requests per minute)
    RATE_LIMIT_PUBLIC_READ: int = 120
    RATE_LIMIT_PUBLIC_SUBMIT: int = 20

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def edit_window(self) -> timedelta:
        return timedelta(minutes=self.EDIT_WINDOW_MINUTES)

    @property
    def review_window(self) -> timedelta:
        return timedelta(seconds=self.REVIEW_WINDOW_SECONDS)

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
