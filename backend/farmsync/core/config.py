from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    APP_NAME: str = "Primefield Farm Field Agent"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Local durable storage (survives restarts, scoped to this device)
    DATABASE_URL: str = "sqlite:///./farmsync.db"
    PENDING_KEY_PREFIX: str = "farm_pending_"

    # Remote farm API
    FARM_API_BASE_URL: str = "http://localhost:3000"
    FARM_API_TIMEOUT: float = 10.0
    FARM_API_SESSION_COOKIE: Optional[str] = None  # Ambient session, no token handling
    FARM_API_SESSION_COOKIE_NAME: str = "sb-access-token"

    # Initial connectivity signal at startup (updated via /offline/connectivity)
    START_ONLINE: bool = True

    # Number of user-facing notifications kept for the UI to poll
    NOTIFICATION_HISTORY: int = 50

    class Config:
        env_file = ".env"


settings = Settings()
