from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Asia/Kolkata"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth (token issuance lives elsewhere; we only verify)
    AUTH_JWT_SECRET: str = "test-jwt-secret"
    AUTH_JWT_ALGORITHM: str = "HS256"

    # Paytm
    PAYTM_ENV: Literal["staging", "production"] = "staging"
    PAYTM_MID: str = ""
    PAYTM_MERCHANT_KEY: str = ""
    PAYTM_POS_ID: str = "DG_POS_01"
    PAYTM_CLIENT_ID: str = "DG"
    PAYTM_TIMEOUT_SECONDS: float = 15.0

    # Invoices
    COMPANY_LEGAL_NAME: str = "Wholesale Trading Co."
    COMPANY_GST_NUMBER: Optional[str] = None
    INVOICE_STORAGE_DIR: str = "./var/invoices"
    INVOICE_PUBLIC_BASE_URL: str = "http://localhost:8000/static/invoices"
    INVOICE_RENDER_ATTEMPTS: int = 3
    INVOICE_RENDER_BACKOFF_SECONDS: float = 0.2

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @property
    def PAYTM_BASE_URL(self) -> str:
        if self.PAYTM_ENV == "production":
            return "https://securegw.paytm.in"
        return "https://securegw-stage.paytm.in"


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
