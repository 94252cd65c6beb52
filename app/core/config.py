from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql://postgres:postgres@db:5432/minsponsor"

    # Frontend (checkout success/cancel pages, Vipps redirect targets)
    FRONTEND_URL: str = "http://localhost:3000"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None  # Webhook signing secret for signature verification
    STRIPE_API_VERSION: Optional[str] = None  # Pin an API version; None uses the account default

    # Vipps Recurring
    VIPPS_CLIENT_ID: Optional[str] = None
    VIPPS_CLIENT_SECRET: Optional[str] = None
    VIPPS_SUBSCRIPTION_KEY: Optional[str] = None
    VIPPS_MERCHANT_SERIAL_NUMBER: Optional[str] = None  # Partner MSN, used for the access token call
    VIPPS_USE_TEST_MODE: bool = False
    VIPPS_WEBHOOK_SECRET: Optional[str] = None
    VIPPS_SYSTEM_NAME: str = "MinSponsor"
    VIPPS_SYSTEM_VERSION: str = "1.0.0"

    # Shared secrets for machine-to-machine endpoints
    CRON_SECRET: Optional[str] = None
    ADMIN_API_KEY: Optional[str] = None

    # Provider HTTP calls
    HTTP_TIMEOUT_SECONDS: float = 15.0

    # Billing
    PLATFORM_FEE_PERCENT: int = 10
    CURRENCY: str = "nok"
    VIPPS_CHARGE_LEAD_DAYS: int = 3  # Vipps requires due dates at least 2 days out
    VIPPS_CHARGE_RETRY_DAYS: int = 5
    VIPPS_MIN_DAYS_BETWEEN_CHARGES: int = 25

    @property
    def vipps_api_base_url(self) -> str:
        if self.VIPPS_USE_TEST_MODE:
            return "https://apitest.vipps.no"
        return "https://api.vipps.no"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        # Environment variables win over values in .env


settings = Settings()
