"""Configuration loading and validation."""

from .models import (
    AppConfig,
    Credentials,
    EnrichmentConfig,
    FilterConfig,
    LoggingConfig,
    PaginationConfig,
    PlaywrightConfig,
    PortalConfig,
    SelectorConfig,
    TimeoutConfig,
)
from .loader import credentials_from_env, load_app_config, validate_config_file

__all__ = [
    # Config models
    "AppConfig",
    "Credentials",
    "EnrichmentConfig",
    "FilterConfig",
    "LoggingConfig",
    "PaginationConfig",
    "PlaywrightConfig",
    "PortalConfig",
    "SelectorConfig",
    "TimeoutConfig",
    # Loaders
    "credentials_from_env",
    "load_app_config",
    "validate_config_file",
]
