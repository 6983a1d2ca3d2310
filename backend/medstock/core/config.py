from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "MedStock API"
    app_env: str = "dev"
    log_level: str = "INFO"
    secret_key: str = DEFAULT_SECRET_KEY
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    database_url: str = "sqlite+aiosqlite:///./medstock.db"
    cors_allow_origins: str = "http://localhost:4200"
    identity_provider_enabled: bool = False
    identity_issuer: str | None = None
    identity_jwks_url: str | None = None
    identity_authorized_parties: str = ""
    identity_jwt_audience: str | None = None
    identity_jwks_cache_ttl_seconds: int = 300
    family_member_limit: int = 20
    transaction_max_attempts: int = 30
    medication_expiry_warning_days: int = 30
    medication_low_stock_ratio: float = 0.2

    @model_validator(mode="after")
    def reject_default_secret(self) -> "Settings":
        # Local tokens carry the admin claim, so the placeholder key only works in dev.
        if self.app_env != "dev" and self.secret_key == DEFAULT_SECRET_KEY:
            raise ValueError("SECRET_KEY must be set when APP_ENV is not dev.")
        return self

    @property
    def cors_origins(self) -> list[str]:
        return [x.strip() for x in self.cors_allow_origins.split(",") if x.strip()]

    @property
    def identity_authorized_party_list(self) -> list[str]:
        return [x.strip() for x in self.identity_authorized_parties.split(",") if x.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
