"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    database_url: str = Field(
        default="sqlite:///./invoice.db", alias="DATABASE_URL"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    celery_broker_url: str | None = Field(
        default=None, alias="CELERY_BROKER_URL"
    )
    celery_result_backend: str | None = Field(
        default=None, alias="CELERY_RESULT_BACKEND"
    )
    redis_ca_cert_path: str | None = Field(default=None, alias="REDIS_CA_CERT_PATH")
    auth0_domain: str | None = Field(default=None, alias="AUTH0_DOMAIN")
    auth0_audience: str | None = Field(default=None, alias="AUTH0_AUDIENCE")

    invoice_number_prefix: str = Field(default="INV-", alias="INVOICE_NUMBER_PREFIX")

    compliance_api_base_url: str = Field(
        default="https://api.dddinvoices.com/api/service",
        alias="COMPLIANCE_API_BASE_URL",
    )
    compliance_api_key: str | None = Field(default=None, alias="COMPLIANCE_API_KEY")
    compliance_auth_scheme: str = Field(default="IoT", alias="COMPLIANCE_AUTH_SCHEME")
    compliance_timeout_seconds: float = Field(
        default=30.0, alias="COMPLIANCE_TIMEOUT_SECONDS"
    )
    compliance_currency: str = Field(default="AUD", alias="COMPLIANCE_CURRENCY")
    compliance_seller_vat_number: str | None = Field(
        default=None, alias="COMPLIANCE_SELLER_VAT_NUMBER"
    )
    compliance_buyer_order_ref: str | None = Field(
        default=None, alias="COMPLIANCE_BUYER_ORDER_REF"
    )

    mail_api_url: str = Field(
        default="https://api.resend.com/emails", alias="MAIL_API_URL"
    )
    mail_api_key: str | None = Field(default=None, alias="MAIL_API_KEY")
    mail_from: str = Field(default="invoices@example.com", alias="MAIL_FROM")
    mail_default_sender_name: str = Field(
        default="SmartInvoice", alias="MAIL_DEFAULT_SENDER_NAME"
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def get(self, key: str, default: object | None = None) -> object | None:
        """Dictionary-style access to configuration values."""

        return self.model_dump(by_alias=True).get(key, default)

    @property
    def broker_url(self) -> str:
        """Return the Celery broker URL, defaulting to Redis."""

        return self.celery_broker_url or self.redis_url

    @property
    def result_backend(self) -> str:
        """Return the Celery result backend, defaulting to the Redis URL."""

        if self.celery_result_backend:
            return self.celery_result_backend
        return self.redis_url

    @property
    def compliance_authorization(self) -> str:
        """Return the ``Authorization`` header value for the compliance API."""

        return f"{self.compliance_auth_scheme} {self.compliance_api_key or ''}".strip()


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
