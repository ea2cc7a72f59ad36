'''
Holds all the configurations
'''
from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """
    Manages application configuration using environment variables.
    """
    # Application Metadata
    APP_NAME: str = "EduMesh Backend"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "The backend API for the EduMesh school-management platform."
    TEST_MODE: bool = False
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Database URL
    DATABASE_URL_PROD: str
    DATABASE_URL_TEST: str = "sqlite+aiosqlite:///:memory:"
    @property
    def database_url(self) -> str:
        """
        Dynamically returns the correct database URL based on the test_mode flag.
        """
        if self.TEST_MODE:
            return self.DATABASE_URL_TEST
        return self.DATABASE_URL_PROD

    # Connection pool (ignored by sqlite)
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    # Redis (OTP store)
    REDIS_URL: str = "redis://localhost:6379/0"

    # JWT Settings
    SECRET_KEY: str
    REFRESH_SECRET_KEY: Optional[str] = None
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # OTP Settings
    OTP_LENGTH: int = 6
    OTP_TTL_SECONDS: int = 300
    OTP_VERIFIED_TTL_SECONDS: int = 600
    OTP_DEMO_CODE: Optional[str] = None # fixed code for demos, never set in production

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    NOTIFICATIONS_PAGE_SIZE: int = 50
    CHAT_PAGE_SIZE: int = 50

    # Errors: 500 responses carry the underlying error text unless disabled
    EXPOSE_INTERNAL_ERRORS: bool = True

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"
    BACKEND_CORS_ORIGINS: list[str] = []

    class Config:
        env_file = ".env" # automatically loads the .env
        extra = "ignore"

# Create a single, importable instance of the settings
settings = Settings()
