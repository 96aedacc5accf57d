from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import field_validator
from typing import Annotated
from functools import lru_cache
import json

from sspl_backend.core.exceptions import ConfigurationError


# Origins accepted in production in addition to ALLOWED_ORIGINS.
# "null" covers file:// pages used for controlled testing.
DEFAULT_PRODUCTION_ORIGINS = [
    "https://www.ssplt10.cloud",
    "https://ssplt10.cloud",
    "https://ssplt10.co.in",
    "https://preview.ssplt10.cloud",
    "null",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost",
    "http://localhost:3000",
]

REQUIRED_FIELDS = ("RAZORPAY_KEY_ID", "RAZORPAY_KEY_SECRET")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App Settings
    APP_NAME: str = "SSPL Payments Backend"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, preview, production
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    # Razorpay Payment Gateway
    RAZORPAY_KEY_ID: str = ""  # Public key id, safe to expose via /config
    RAZORPAY_KEY_SECRET: str = ""  # Never leaves the server
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"
    RECEIPT_PREFIX: str = "sspl"

    # Supabase (registration store)
    SUPABASE_URL: str = ""  # e.g., "https://xxxx.supabase.co"
    SUPABASE_KEY: str = ""
    REGISTRATIONS_TABLE: str = "player_registrations"

    # CORS - accepts JSON string, comma-separated, or list
    ALLOWED_ORIGINS: Annotated[list[str], NoDecode] = []

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        if isinstance(v, str):
            if not v.strip():
                return []
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        """Production allowlist: defaults plus ALLOWED_ORIGINS, order kept, no duplicates."""
        return list(dict.fromkeys(DEFAULT_PRODUCTION_ORIGINS + self.ALLOWED_ORIGINS))

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_KEY)

    def missing_required(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]


def load_settings(**overrides) -> Settings:
    """
    Build settings and fail fast on missing gateway credentials.

    Raises:
        ConfigurationError: listing every missing required variable
    """
    settings = Settings(**overrides)
    missing = settings.missing_required()
    if missing:
        raise ConfigurationError(
            f"Missing required server environment variables: {', '.join(missing)}",
            missing=missing,
        )
    return settings


@lru_cache()
def get_settings() -> Settings:
    """Get cached, validated settings instance."""
    return load_settings()
