"""Application configuration"""

from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "StitchPay Billing API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Security
    # WHY: Bearer tokens are issued by the hosted auth platform and signed
    # with its shared JWT secret; "sub" carries the user id.
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = "authenticated"

    # Database
    DATABASE_URL: str

    # URLs
    FRONTEND_URL: str = "http://localhost:5173"

    # 2Checkout (Verifone)
    # Empty secrets are allowed at startup; signing and verification fail closed.
    TCO_MERCHANT_CODE: str = ""
    TCO_BUY_LINK_SECRET: str = ""
    TCO_INS_SECRET_WORD: str = ""
    TCO_CHECKOUT_URL: str = "https://secure.2checkout.com/order/checkout.php"
    TCO_CURRENCY: str = "USD"
    TCO_SUCCESS_STATUSES: list[str] = ["COMPLETE", "AUTHRECEIVED", "PAYMENT_AUTHORIZED"]
    TCO_AMOUNT_TOLERANCE: Decimal = Decimal("0.01")

    # S3-compatible object storage (Backblaze B2 in production)
    S3_ENDPOINT: Optional[str] = None
    S3_REGION: str = "us-east-005"
    S3_ACCESS_KEY: Optional[str] = None
    S3_SECRET_KEY: Optional[str] = None
    S3_STOCK_DESIGN_BUCKET: str = "stock-design-files"
    S3_ORDER_ATTACHMENTS_BUCKET: str = "order-attachments"

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @property
    def tco_configured(self) -> bool:
        """
        Check if outbound checkout signing is configured.

        WHY: The admin UI hides the "generate invoice" action when the
        merchant code or buy-link secret is missing.
        """
        return all([self.TCO_MERCHANT_CODE, self.TCO_BUY_LINK_SECRET])

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


settings = Settings()
