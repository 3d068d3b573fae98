# ============================================================================
# CLAUDE CONTEXT - CONFIG PACKAGE INIT
# ============================================================================
# STATUS: Configuration package exports
# PURPOSE: Domain config exports plus the get_config singleton
# EXPORTS: All config classes, get_config singleton, reset_config, debug_config helper
# INTERFACES: Pydantic BaseModel
# PYDANTIC_MODELS: AppConfig, RetryPolicyConfig, CosmosDbConfig, StorageConfig,
#                  ServiceBusConfig, AppInsightsConfig, KeyVaultConfig, DockerConfig
# DEPENDENCIES: domain config modules
# VALIDATION: Pydantic v2 validation
# PATTERNS: Singleton, composition, facade
# ENTRY_POINTS: from config import get_config
# ============================================================================

"""
Configuration Package - Domain-Specific Configuration Modules

Structure:
    config/
    ├── __init__.py              # This file - exports and singleton
    ├── app_config.py            # Main config (composes domain configs)
    ├── defaults.py              # Default value constants
    ├── retry_config.py          # Backoff policy
    ├── cosmos_config.py         # Cosmos DB account and containers
    ├── storage_config.py        # Blob / Table Storage account
    ├── service_bus_config.py    # Service Bus
    ├── app_insights_config.py   # Telemetry export and queries
    ├── key_vault_config.py      # Key Vault
    └── docker_config.py         # Container instance launcher

Usage:
    # Singleton pattern (preferred)
    from config import get_config
    config = get_config()
    retries = config.retry.max_retries

    # Debug output
    from config import debug_config
    info = debug_config()  # Secrets masked
"""

from typing import Optional

from .retry_config import RetryPolicyConfig
from .cosmos_config import CosmosDbConfig, CosmosContainerConfig
from .storage_config import StorageConfig
from .service_bus_config import ServiceBusConfig
from .app_insights_config import AppInsightsConfig
from .key_vault_config import KeyVaultConfig
from .docker_config import DockerConfig
from .app_config import AppConfig


# ============================================================================
# SINGLETON PATTERN
# ============================================================================

_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get global configuration singleton.

    Returns:
        AppConfig instance loaded from environment
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = AppConfig.from_environment()
    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None


def debug_config() -> dict:
    """
    Get sanitized configuration for debugging (masks sensitive values).

    Returns:
        Dictionary with configuration values, secrets masked
    """
    try:
        config = get_config()
        return {
            'environment': config.environment,
            'log_level': config.log_level,
            'retry': config.retry.debug_dict(),
            'cosmos': config.cosmos.debug_dict(),
            'storage': config.storage.debug_dict(),
            'service_bus': config.service_bus.debug_dict(),
            'app_insights': config.app_insights.debug_dict(),
            'key_vault': config.key_vault.debug_dict(),
            'docker': config.docker.debug_dict(),
        }
    except Exception as e:
        return {'error': f'Configuration validation failed: {e}'}


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    # Main config
    'AppConfig',
    'get_config',
    'reset_config',
    'debug_config',

    # Domain configs
    'RetryPolicyConfig',
    'CosmosDbConfig',
    'CosmosContainerConfig',
    'StorageConfig',
    'ServiceBusConfig',
    'AppInsightsConfig',
    'KeyVaultConfig',
    'DockerConfig',
]
