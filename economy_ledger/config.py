"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class LedgerConfig(BaseSettings):
    """Economy ledger configuration"""
    
    # Storage configuration
    storage_backend: str = "json"  # memory, json or sqlite
    storage_path: str = "ledger_data"  # Directory for json, database file for sqlite
    world_id: str = "default"
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8095
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Business rules configuration
    amount_precision: int = 4  # Decimal places for converted and interest amounts
    default_transaction_limit: int = 50
    default_all_transactions_limit: int = 100
    default_exchange_fee: str = "0"  # Percentage applied to new banks without explicit fees
    
    # Feature flags
    enable_events: bool = True
    
    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
