# dreamsaver/core/config.py

from decimal import Decimal
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the project root directory (where .env should be located)
BASE_DIR = Path(__file__).resolve().parent.parent.parent

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra="ignore"
    )

    # App Configuration
    APP_NAME: str = "DreamSaver API"
    DEBUG: bool = False
    VERSION: str = "0.1.0"

    # Database Configuration
    DATABASE_URL: str

    # JWT / Security Configuration (tokens are issued by the identity provider)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080

    # CORS Configuration
    FRONTEND_URL: str = "http://localhost:3000"

    # Backend Configuration
    BACKEND_BASE_URL: str = "http://localhost:8000"

    # Stripe Configuration
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CURRENCY: str = "pkr"
    STRIPE_APP_ID: str = "dreamsaver"
    CHECKOUT_SESSION_TTL_MINUTES: int = 30
    # Check with Stripe that a redirect-confirmed session was actually paid
    VERIFY_REDIRECT_PAYMENTS: bool = True

    # Delivery service (called when a completed goal is redeemed)
    DELIVERY_SERVICE_URL: str = "http://localhost:8100"
    DELIVERY_SERVICE_TIMEOUT: float = 10.0

    # Penalty applied when a funded goal is cancelled, quoted on refund only
    REFUND_FEE_PERCENT: Decimal = Decimal("0")

    # Optional: Environment
    ENVIRONMENT: str = "development"

    @property
    def is_supabase(self) -> bool:
        """Check if we're using Supabase database"""
        # Cover both to ensure DB engine gets the right settings
        return any(d in self.DATABASE_URL for d in [
            "supabase.co",
            "supabase.com",
            "pooler.supabase",
        ])

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

# Create a global settings instance
settings = Settings()
