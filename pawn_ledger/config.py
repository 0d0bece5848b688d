"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class PawnLedgerConfig(BaseSettings):
    """Pawn ledger service configuration"""
    
    # Database configuration
    database_url: str = "sqlite:///pawn_ledger.db"  # memory:// for in-memory storage
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    
    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    auth_enabled: bool = True
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr
    
    # Listing configuration
    default_page_size: int = 10
    max_page_size: int = 100
    recent_transactions_limit: int = 10
    
    # Business rules configuration
    recompute_transaction_totals: bool = False  # Caller-supplied totals are trusted by default
    
    # Feature flags
    enable_audit_logging: bool = True
    
    class Config:
        env_prefix = "PAWNLEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = PawnLedgerConfig()


def get_config() -> PawnLedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> PawnLedgerConfig:
    """Reload configuration from environment"""
    global config
    config = PawnLedgerConfig()
    return config
