"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class OpenBankConfig(BaseSettings):
    """OpenBank core configuration"""

    model_config = SettingsConfigDict(
        env_prefix="OPENBANK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    database_url: str = "sqlite:///openbank.db"  # or memory://
    store_timeout_seconds: float = 5.0

    # Business rules configuration
    history_limit: int = 50
    currency_symbol: str = "R"
    identifier_generation_attempts: int = 5

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    cors_allowed_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # Security configuration
    jwt_secret: str = "change-me-in-production-use-a-long-random-value"
    jwt_algorithm: str = "HS256"
    jwt_expiry_days: int = 30

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text


# Global configuration instance
config = OpenBankConfig()


def get_config() -> OpenBankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> OpenBankConfig:
    """Reload configuration from environment"""
    global config
    config = OpenBankConfig()
    return config
