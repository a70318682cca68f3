"""Application configuration"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Dental Clinic API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Security
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 1440  # 24 hours

    # Failed logins from one IP within the window before further logins are refused
    LOGIN_LOCKOUT_ATTEMPTS: int = 10
    LOGIN_LOCKOUT_MINUTES: int = 15

    # Inbound booking webhooks (WordPress, WhatsApp, Practo, SMS, email, partners)
    # WHY: Unset disables the webhooks; every call must be signed with this secret
    WEBHOOK_SECRET: Optional[str] = None
    WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Database
    DATABASE_URL: str

    # Redis
    # WHY: Backs the logout token blacklist and the login/registration rate limiter
    REDIS_URL: str = "redis://localhost:6379/0"

    # Clinic
    TIMEZONE: str = "UTC"
    DEFAULT_COUNTRY: str = "India"
    BOOKING_URL: str = "http://localhost:5173/book"

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    APPOINTMENT_REMINDER_HOURS: int = 24
    APPOINTMENT_REMINDER_MAX_HOURS: int = 168  # longest lead time a patient may choose
    REMINDER_CHECK_INTERVAL_SECONDS: int = 7200  # every 2 hours
    INVENTORY_STATUS_INTERVAL_SECONDS: int = 86400  # daily

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


settings = Settings()
