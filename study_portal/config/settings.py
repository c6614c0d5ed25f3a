"""
Configuration settings for the Study Portal
Handles environment variables and application settings
"""
import os
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Study Portal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = "INFO"

    # Study backend. Empty in development so requests go through the local proxy.
    API_BASE_URL: str = os.getenv("API_BASE_URL", "")
    DEV_PROXY_URL: str = os.getenv("DEV_PROXY_URL", "http://localhost:8080")
    API_TIMEOUT_SECONDS: float = 15.0
    ADMIN_API_PREFIX: str = "/api/admin/"

    # OTP flow
    OTP_CODE_LENGTH: int = 6
    OTP_RESEND_SECONDS: int = 60

    # Browser session
    SESSION_COOKIE_NAME: str = "portal_sid"
    SESSION_COOKIE_SECURE: bool = False
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 4

    # Shown on the no-link-available and enrollment-full notices
    SUPPORT_PHONE: str = "(240) 428-8442"
    SUPPORT_EMAIL: Optional[str] = os.getenv("SUPPORT_EMAIL")

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:8000",
    ]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env file


# Create settings instance
settings = Settings()


# Environment-specific overrides
if settings.ENVIRONMENT == "development":
    settings.DEBUG = True


# Validation
def validate_settings():
    """Validate critical settings"""
    issues = []

    if settings.ENVIRONMENT == "production":
        if not settings.API_BASE_URL:
            issues.append("API_BASE_URL must be set in production")
        if not settings.SESSION_COOKIE_SECURE:
            issues.append("SESSION_COOKIE_SECURE must be enabled in production")

    if settings.OTP_RESEND_SECONDS <= 0:
        issues.append("OTP_RESEND_SECONDS must be positive")

    if issues:
        raise ValueError(f"Configuration issues: {', '.join(issues)}")


# Auto-validate on import in production
if settings.ENVIRONMENT == "production":
    validate_settings()
