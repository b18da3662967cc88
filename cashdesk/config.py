"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class CashDeskConfig(BaseSettings):
    """CashDesk data access configuration"""

    model_config = SettingsConfigDict(
        env_prefix="CASHDESK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    storage_type: str = "memory"  # memory or sqlite
    database_path: str = "cashdesk.db"  # Used by sqlite storage only

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    # Business rules configuration
    name_max_length: int = 100

    # Feature flags
    enable_audit_logging: bool = True


# Global configuration instance
config = CashDeskConfig()


def get_config() -> CashDeskConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> CashDeskConfig:
    """Reload configuration from environment"""
    global config
    config = CashDeskConfig()
    return config
