# backend/app/core/config.py
"""
Production-ready configuration using pydantic-settings.

Security considerations:
- No hardcoded secrets in production (SECRET_KEY must be set via env)
- OTP_SECRET_ENCRYPTION_KEY is read here once and handed to the account
  store explicitly; no other module reads it from the environment
- CORS_ORIGINS parsed from comma-separated env var, never defaults to "*"
- Database URLs normalized for async drivers automatically
"""
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.app.security.totp import TotpPolicy


class Settings(BaseSettings):
    """
    Strictly typed application settings.

    Priority for loading:
    1. Environment variables (highest priority)
    2. .env file (via pydantic-settings)
    3. Default values (lowest priority, dev-safe only)
    """

    # ─────────────────────────────────────────────────────────────
    # Application metadata
    # ─────────────────────────────────────────────────────────────
    PROJECT_NAME: str = "Warden"
    PROJECT_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ─────────────────────────────────────────────────────────────
    # Security: JWT Configuration
    # SECRET_KEY MUST be set in production via environment variable
    # ─────────────────────────────────────────────────────────────
    SECRET_KEY: str = "INSECURE_DEV_KEY_CHANGE_IN_PRODUCTION"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Cost factor for bcrypt password hashes
    BCRYPT_ROUNDS: int = 12

    # ─────────────────────────────────────────────────────────────
    # Two-factor (TOTP) configuration
    # Defaults match what Google Authenticator, Authy and Aegis expect
    # ─────────────────────────────────────────────────────────────
    TOTP_ISSUER: str = "Warden"
    TOTP_DIGITS: int = 6
    TOTP_INTERVAL: int = 30
    TOTP_VALID_WINDOW: int = 1
    TOTP_SECRET_LENGTH: int = 32

    # Base64-encoded 32-byte key for AES-256-GCM encryption of OTP secrets.
    # Empty means two-factor endpoints refuse to run.
    OTP_SECRET_ENCRYPTION_KEY: str = ""

    @field_validator("TOTP_DIGITS")
    @classmethod
    def validate_digits(cls, v: int) -> int:
        if not 6 <= v <= 10:
            raise ValueError("TOTP_DIGITS must be between 6 and 10")
        return v

    @field_validator("TOTP_INTERVAL")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("TOTP_INTERVAL must be positive")
        return v

    @field_validator("TOTP_VALID_WINDOW")
    @classmethod
    def validate_window(cls, v: int) -> int:
        if v < 0:
            raise ValueError("TOTP_VALID_WINDOW cannot be negative")
        return v

    @field_validator("TOTP_SECRET_LENGTH")
    @classmethod
    def validate_secret_length(cls, v: int) -> int:
        # 32 base32 characters = 160 bits
        if v < 32:
            raise ValueError("TOTP_SECRET_LENGTH must be at least 32")
        return v

    # ─────────────────────────────────────────────────────────────
    # Database Configuration
    # Priority: DATABASE_URL env var → SQLite fallback for local dev
    # ─────────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./warden.db"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """
        Normalize database URLs for async SQLAlchemy compatibility.

        Conversions:
        - postgres://     → postgresql+asyncpg://
        - postgresql://   → postgresql+asyncpg://
        - sqlite:///      → sqlite+aiosqlite:///
        """
        if v is None:
            return "sqlite+aiosqlite:///./warden.db"

        url = v.strip()

        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)

        if url.startswith("postgresql://") and "+asyncpg" not in url:
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)

        if url.startswith("sqlite:///") and "+aiosqlite" not in url:
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

        return url

    # MUST be False in production to prevent SQL query exposure
    DATABASE_ECHO: bool = False

    # ─────────────────────────────────────────────────────────────
    # CORS Configuration
    # Empty string → empty list (NOT "*" for security)
    # ─────────────────────────────────────────────────────────────
    CORS_ORIGINS: str = "http://localhost:5500,http://127.0.0.1:5500,http://localhost:8000,http://127.0.0.1:8000"

    @property
    def BACKEND_CORS_ORIGINS(self) -> List[str]:
        """Parse CORS_ORIGINS string into a list of allowed origins."""
        if not self.CORS_ORIGINS or not self.CORS_ORIGINS.strip():
            return []

        return [
            origin.strip()
            for origin in self.CORS_ORIGINS.split(",")
            if origin.strip()
        ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        # Extra fields in .env are ignored (prevents config injection)
        extra="ignore",
    )

    @property
    def totp_policy(self) -> TotpPolicy:
        return TotpPolicy(
            digits=self.TOTP_DIGITS,
            interval=self.TOTP_INTERVAL,
            valid_window=self.TOTP_VALID_WINDOW,
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance.

    Using lru_cache ensures settings are only loaded once,
    providing consistent configuration across the application.
    """
    return Settings()


settings = get_settings()
