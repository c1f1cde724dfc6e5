"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# ===========================================
# Product Branding
# ===========================================
PRODUCT_NAME = "FormLogic"
PRODUCT_TAGLINE = "Conditional rules and field hierarchy checks for dynamic forms."
PRODUCT_VERSION = "1.0.0"


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Condition evaluation
    case_sensitive_comparisons: bool = False
    max_condition_depth: int = 64

    # Unprefixed field references resolve against this module when the
    # data context does not name a current module
    default_module_key: str = "current"

    # Rules
    default_rule_priority: int = 100

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="FORMLOGIC_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
