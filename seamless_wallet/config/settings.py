from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    # General
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./seamless_wallet.db"
    DB_ECHO: bool = False

    # Provider callback authentication
    SEAMLESS_SALT_KEY: str = "change_me_salt_key"
    SEAMLESS_VERIFY_SIGNATURE: bool = True

    # Wallet engine
    SEAMLESS_LOCK_TIMEOUT_MS: int = 5000  # bounded wait for the account row lock
    SEAMLESS_SESSION_EXPIRY_SECONDS: int = 3600
    SEAMLESS_RECORD_BALANCE_REQUESTS: bool = True
    SEAMLESS_ROLLBACK_NOT_FOUND_STATUS: str = "404"  # some providers expect "408"
    SEAMLESS_DEFAULT_CURRENCY: str = "EUR"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

@lru_cache()
def get_settings() -> Settings:
    """
    Returns the process-wide settings. Cached so the .env file and the
    environment are read only once.
    """
    return Settings()

settings = get_settings()
