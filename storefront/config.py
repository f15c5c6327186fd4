import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "postgresql://localhost/storefront")

    # API
    API_TOKEN: str = os.getenv("API_TOKEN", "")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))

    # Stripe
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    CURRENCY: str = os.getenv("CURRENCY", "usd")
    DEFAULT_DELIVERY_FEE: Decimal = Decimal(os.getenv("DEFAULT_DELIVERY_FEE", "5"))

    # Email
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
    RESEND_BASE_URL: str = os.getenv("RESEND_BASE_URL", "https://api.resend.com")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "Femty Grocery <onboarding@resend.dev>")

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for the application"""
        return self._with_scheme("postgresql+asyncpg://")

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Sync URL for Alembic"""
        return self._with_scheme("postgresql://")

    def _with_scheme(self, scheme: str) -> str:
        url = self.POSTGRES_CONNECTION_STRING
        for prefix in ("postgres://", "postgresql://"):
            if url.startswith(prefix):
                return scheme + url[len(prefix):]
        return url

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
