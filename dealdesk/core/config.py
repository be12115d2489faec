import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_SECRET = "change-this-to-a-random-string-in-production"  # noqa: S105


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    APP_ENV: str = "development"
    APP_DEBUG: bool = False
    SECRET_KEY: str = _DEFAULT_SECRET
    API_URL: str = "http://localhost:8000"
    FRONTEND_URL: str = "http://localhost:3000"

    # Security
    MAX_REQUEST_BODY_BYTES: int = 1_048_576  # 1 MB, the API takes JSON only

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> "Settings":
        if self.APP_ENV == "production":
            if self.SECRET_KEY == _DEFAULT_SECRET:
                print(  # noqa: T201
                    "FATAL: SECRET_KEY must be changed before running in production.",
                    file=sys.stderr,
                )
                sys.exit(1)
            if len(self.SECRET_KEY) < 32:
                print(  # noqa: T201
                    "FATAL: SECRET_KEY must be at least 32 characters in production.",
                    file=sys.stderr,
                )
                sys.exit(1)
            if not self.SENTRY_DSN:
                import warnings
                warnings.warn(
                    "SENTRY_DSN not set in production, errors will be invisible",
                    stacklevel=2,
                )
        return self

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./dealdesk.db"
    DATABASE_URL_SYNC: str = "sqlite:///./dealdesk.db"

    # Auth (bearer tokens minted by the session service)
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = ""  # verified only when set

    # Sentry error monitoring, no-op when SENTRY_DSN is unset
    SENTRY_DSN: str | None = None
    SENTRY_ENVIRONMENT: str = "development"
    APP_VERSION: str | None = None


settings = Settings()
