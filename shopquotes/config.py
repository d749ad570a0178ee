from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (Postgres behind the hosted data store)
    DATABASE_URL: str | None = None

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v: str | None) -> str | None:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if isinstance(v, str):
            v = v.strip() or None
        if v and v.startswith('postgresql://'):
            return v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v

    # Object storage (Supabase Storage)
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    LOGO_BUCKET: str = "company-logos"

    # Business settings record; newest row is used when unset
    SETTINGS_RECORD_ID: int | None = None

    # Outbound notification webhook
    NOTIFY_WEBHOOK_URL: str | None = None
    NOTIFY_WEBHOOK_TOKEN: str | None = None
    NOTIFY_WEBHOOK_TIMEOUT: float = 10.0

    # Quote rendering and validation
    QUOTE_VALIDITY_DAYS: int = 15
    DISPLAY_TIMEZONE: str = "America/Sao_Paulo"
    ENFORCE_QUOTE_TOTAL: bool = False

    # CORS
    FRONTEND_URL: str = "http://localhost:3000"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @field_validator('SUPABASE_URL', 'NOTIFY_WEBHOOK_URL', mode='before')
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            v = v.strip().rstrip("/")
            return v or None
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "staging")

    @property
    def sqlalchemy_echo(self) -> bool:
        """Never echo SQL (and bound credentials) outside local debugging."""
        return self.DEBUG and not self.is_production

    @property
    def database_configured(self) -> bool:
        return bool(self.DATABASE_URL)

    @property
    def storage_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)

    @property
    def webhook_configured(self) -> bool:
        return bool(self.NOTIFY_WEBHOOK_URL)

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
