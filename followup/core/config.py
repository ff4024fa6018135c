# followup/core/config.py
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    # ===================================
    # APPLICATION SETTINGS
    # ===================================
    APP_NAME: str = "Bodyshop Follow-up Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # ===================================
    # API SETTINGS
    # ===================================
    ALLOWED_ORIGINS: List[str] = ["*"]

    # Shared secret the external scheduler sends as a bearer token
    CRON_SECRET: Optional[str] = None

    # ===================================
    # STORE SELECTION
    # ===================================
    STORE_BACKEND: str = "json"  # Options: "memory", "json", "postgrest"
    DATA_DIR: str = "data"
    STORE_FILENAME: str = "followup.json"

    # Hosted PostgREST / Supabase
    SUPABASE_URL: Optional[str] = None
    SUPABASE_KEY: Optional[str] = None
    STORE_TIMEOUT_SECONDS: float = 15.0

    # ===================================
    # EMAIL TRANSPORT (Resend-style HTTP API)
    # ===================================
    RESEND_API_KEY: Optional[str] = None
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_TIMEOUT_SECONDS: float = 20.0

    # ===================================
    # SMS TRANSPORT (Twilio REST API)
    # ===================================
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None
    TWILIO_API_URL: str = "https://api.twilio.com/2010-04-01"
    SMS_TIMEOUT_SECONDS: float = 20.0
    DEFAULT_COUNTRY_CODE: str = "+33"

    # ===================================
    # HEADLESS BROWSER
    # ===================================
    BROWSER_HEADLESS: bool = True
    BROWSER_EXECUTABLE_PATH: Optional[str] = None
    BROWSER_TIMEOUT_MS: int = 30000
    LOGIN_FIELD_TIMEOUT_MS: int = 10000
    LOGIN_SUBMIT_TIMEOUT_MS: int = 15000
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
    )

    # ===================================
    # COMPUTED PROPERTIES
    # ===================================
    @property
    def is_postgrest_configured(self) -> bool:
        """Check if the hosted store has both URL and key."""
        return bool(self.SUPABASE_URL and self.SUPABASE_KEY)

    @property
    def is_twilio_configured(self) -> bool:
        return bool(
            self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE_NUMBER
        )

    # ===================================
    # PYDANTIC CONFIG
    # ===================================
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "allow"


# ===================================
# SINGLETON PATTERN
# ===================================
@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
