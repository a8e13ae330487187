# backend/coursepay/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the payment settlement backend."""

    # Runtime
    environment: str = Field(default="development", description="development | production")
    is_testing: bool = Field(default=False, description="Set by the test harness")
    database_url: str = Field(
        default="sqlite:///./coursepay.db",
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
    )

    # JWT
    secret_key: SecretStr = Field(
        default=SecretStr("dev-only-insecure-secret-key-change-me"),
        description="Signing key for bearer tokens",
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720

    # Payment processor (Chapa)
    chapa_secret_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("CHAPA_SECRET_KEY", "chapa_secret_key"),
    )
    chapa_base_url: str = "https://api.chapa.co/v1"
    chapa_timeout_seconds: float = 10.0
    chapa_payout_timeout_seconds: float = 15.0
    webhook_secret: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("CHAPA_WEBHOOK_SECRET", "WEBHOOK_SECRET", "webhook_secret"),
        description="HMAC-SHA256 secret for inbound webhooks; unset runs in degraded mode",
    )

    # Settlement
    instructor_share_ratio: Decimal = Field(
        default=Decimal("0.80"),
        description="Fraction of each payment credited to the course instructor",
    )
    payment_currency: str = "ETB"
    reference_prefix: str = Field(
        default="FIDELHUB",
        validation_alias=AliasChoices("PAYMENT_REFERENCE_PREFIX", "reference_prefix"),
    )
    simulate_payouts: Optional[bool] = Field(
        default=None,
        validate_default=True,
        description="Skip real transfers; defaults to true outside production",
    )

    # URLs
    backend_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"

    # Email
    email_provider: Literal["console", "resend"] = "console"
    resend_api_key: Optional[SecretStr] = None
    from_email: str = "CoursePay <no-reply@coursepay.local>"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("instructor_share_ratio")
    @classmethod
    def _validate_ratio(cls, value: Decimal) -> Decimal:
        if not Decimal("0") < value < Decimal("1"):
            raise ValueError("INSTRUCTOR_SHARE_RATIO must be strictly between 0 and 1")
        return value

    @field_validator("webhook_secret", mode="before")
    @classmethod
    def _blank_secret_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("simulate_payouts")
    @classmethod
    def _default_simulation(cls, value: Optional[bool], info: ValidationInfo) -> bool:
        if value is not None:
            return value
        return info.data.get("environment", "development") != "production"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def webhook_callback_url(self) -> str:
        return f"{self.backend_url.rstrip('/')}/payment/webhook"

    def payment_return_url(self, course_id: str, reference: str) -> str:
        return (
            f"{self.frontend_url.rstrip('/')}/payment-success"
            f"?course={course_id}&tx_ref={reference}"
        )


settings = Settings()
