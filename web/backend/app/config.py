"""Конфигурация приложения"""
import os
from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Настройки приложения"""
    # База данных
    DB_HOST: str = os.getenv("DB_HOST", "postgres")
    DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
    DB_NAME: str = os.getenv("DB_NAME", "salon_db")
    DB_USER: str = os.getenv("DB_USER", "salon_user")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
    TEST_DATABASE_URL: Optional[str] = os.getenv("TEST_DATABASE_URL")

    # Web
    SECRET_KEY: str = os.getenv("WEB_SECRET_KEY", "change-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    HOST: str = os.getenv("WEB_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("WEB_PORT", "8000"))
    CORS_ORIGINS: List[str] = os.getenv("WEB_CORS_ORIGINS", "http://localhost:3000").split(",")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Купоны
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "$")
    COUPON_TIMEZONE: str = os.getenv("COUPON_TIMEZONE", "UTC")
    AVAILABLE_COUPONS_LIMIT: int = int(os.getenv("AVAILABLE_COUPONS_LIMIT", "20"))
    POPULAR_COUPONS_LIMIT: int = int(os.getenv("POPULAR_COUPONS_LIMIT", "10"))

    # Redis (Celery брокер)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "redis")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def database_url(self) -> str:
        """URL подключения к БД (DATABASE_URL имеет приоритет)"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


settings = Settings()
