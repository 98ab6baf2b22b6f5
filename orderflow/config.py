"""
Settings: environment-driven configuration.

Every value can be overridden with an ORDERFLOW_-prefixed environment
variable or a .env file in the working directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from orderflow._types import Money, to_money


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ORDERFLOW_",
        env_file=".env",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field("sqlite+aiosqlite:///./orderflow.db", description="SQLAlchemy async URL")
    DB_ECHO: bool = Field(False, description="Log SQL statements")

    # Pricing
    TAX_RATE: Decimal = Field(Decimal("0.085"), ge=0, description="Tax fraction applied to items price")
    FREE_SHIPPING_THRESHOLD: Decimal = Field(Decimal("50.00"), ge=0)
    SHIPPING_COST: Decimal = Field(Decimal("5.99"), ge=0)
    CURRENCY: str = Field("usd", min_length=3, max_length=3)
    DEFAULT_COUNTRY: str = "United States"

    # Payment gateway
    STRIPE_API_BASE: str = "https://api.stripe.com"
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_TIMEOUT: float = 30.0
    WEBHOOK_TOLERANCE_SECONDS: int = Field(300, ge=0)
    WEBHOOK_DEDUP_TTL_HOURS: int = Field(72, ge=1)
    WEBHOOK_CLAIM_LEASE_SECONDS: int = Field(300, ge=1)

    # Order lifecycle
    INTENT_STALE_AFTER_SECONDS: int = Field(300, ge=1)
    STRICT_STATUS_TRANSITIONS: bool = False

    LOG_LEVEL: str = "INFO"

    def pricing(self) -> Pricing:
        return Pricing(
            tax_rate=self.TAX_RATE,
            free_shipping_threshold=to_money(self.FREE_SHIPPING_THRESHOLD),
            shipping_cost=to_money(self.SHIPPING_COST),
        )


@dataclass(frozen=True, slots=True)
class Pricing:
    """Externally configured inputs to totals computation."""

    tax_rate: Decimal
    free_shipping_threshold: Money
    shipping_cost: Money


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ("Settings", "Pricing", "get_settings")
