"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Profit Dashboard"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Storage
    DATA_DIR: str = "./data"
    DATABASE_URL: str = ""  # Defaults to sqlite:///{DATA_DIR}/inventory-cache.db

    # JWT (issued by the auth service, verified here)
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # CORS / hosts
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    ALLOWED_HOSTS: List[str] = ["*"]

    # Square API
    SQUARE_ACCESS_TOKEN: str = ""
    SQUARE_ENVIRONMENT: str = "sandbox"  # or "production"
    SQUARE_API_VERSION: str = "2024-01-18"
    SQUARE_TIMEOUT_SECONDS: float = 30.0

    # Background sync
    SYNC_INTERVAL_MINUTES: float = 30
    SYNC_STARTUP_DELAY_SECONDS: float = 5
    SYNC_ON_STARTUP: bool = True

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 100
    RATE_LIMIT_MANUAL_SYNC: str = "6/minute"  # each manual sync fans out to many Square calls

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{self.DATA_DIR.rstrip('/')}/inventory-cache.db"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
