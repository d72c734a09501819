from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Woofadaar Billing"
    version: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    APP_DOMAIN: str = "woofadaar.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/woofadaar.db"

    # Auth. JWT_SECRET is required; settings fail to load without it.
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24

    # Coupons
    CURRENCY_SYMBOL: str = "₹"
    REFERRAL_REWARD_AMOUNT: Decimal = Decimal("25")
    REFERRAL_COUPON_VALIDITY_DAYS: int = 90

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"


settings = Settings()  # type: ignore[call-arg]
