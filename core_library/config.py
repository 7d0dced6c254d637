"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class LibsysConfig(BaseSettings):
    """Library system configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LIBSYS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    database_filename: str = "librecords.db"  # Relative to the root directory
    text_encoding: str = "utf-8"  # Encoding of fixed-width text fields

    # Built-in administrator (identifier 1), seeded on first boot
    admin_account: str = "admin"
    admin_password: str = "admin"

    # Clear-text default applied by admin password resets
    default_reset_password: str = "123456"

    # Business rules configuration
    currency: str = "CNY"
    late_fee_per_day: str = "0.30"  # Major units per overdue day

    # Logging configuration
    log_level: str = "WARNING"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr


# Global configuration instance
config = LibsysConfig()


def get_config() -> LibsysConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LibsysConfig:
    """Reload configuration from environment"""
    global config
    config = LibsysConfig()
    return config
