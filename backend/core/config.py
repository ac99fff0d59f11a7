from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # App settings
    APP_NAME: str = "Findex Auth API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Security settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_TOKEN_ROTATION: bool = True
    # Mongo TTL sweep runs this long after expires_at so the lazy check sees expired records first
    REFRESH_TOKEN_TTL_GRACE_DAYS: int = 30
    REFRESH_TOKEN_COOKIE_NAME: str = "refresh_token"

    # OTP settings
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10
    OTP_RESEND_MIN_SECONDS: int = 60
    OTP_MAX_ATTEMPTS: int = 5  # 0 disables the cap

    # Profile placeholders for users created on first OTP request
    DEFAULT_FULL_NAME: str = "New User"
    DEFAULT_COLLEGE: str = "Unknown"

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # API settings
    API_PREFIX: str = "/api/users"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TTL_DAYS: int = 7

    # SMTP / Email settings
    SMTP_HOST: Optional[str] = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    # Extra sender accounts as "user:password" entries; one is picked at random per message
    SMTP_ACCOUNTS: List[str] = []
    SMTP_FROM_NAME: str = "Findex"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT: int = 15
    SMTP_DEBUG: bool = False
    SMTP_VERIFY_ON_STARTUP: bool = False

    # MongoDB
    MONGO_URI: Optional[str] = None
    MONGO_DB: str = "findex_auth"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True

# Create settings instance
settings = Settings()

# Validate required settings
if not settings.SECRET_KEY:
    raise ValueError("SECRET_KEY environment variable is required")
