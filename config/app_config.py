"""
Main Application Configuration.

Composes domain-specific configuration modules:
    - RetryPolicyConfig (backoff shared by all wrappers)
    - CosmosDbConfig (account, database, container map)
    - StorageConfig (blob and table account)
    - ServiceBusConfig (connection, receive settings)
    - AppInsightsConfig (telemetry export and queries)
    - KeyVaultConfig (vault url, optional service principal)
    - DockerConfig (container instance launcher)

Exports:
    AppConfig: Main configuration class

Dependencies:
    pydantic: BaseModel for configuration validation
    config.defaults: Default value constants

Pattern:
    Composition over inheritance - domain configs are composed, not inherited.
"""

import os
from pydantic import BaseModel, Field

from .retry_config import RetryPolicyConfig
from .cosmos_config import CosmosDbConfig
from .storage_config import StorageConfig
from .service_bus_config import ServiceBusConfig
from .app_insights_config import AppInsightsConfig
from .key_vault_config import KeyVaultConfig
from .docker_config import DockerConfig
from .defaults import AppDefaults


# ============================================================================
# APPLICATION CONFIGURATION
# ============================================================================

class AppConfig(BaseModel):
    """
    Application configuration - composition of domain configs.

    Each domain config manages its own validation and defaults.
    """

    # ========================================================================
    # Core Application Settings
    # ========================================================================

    environment: str = Field(
        default=AppDefaults.ENVIRONMENT,
        description="Deployment environment name (dev, test, prod)"
    )

    log_level: str = Field(
        default=AppDefaults.LOG_LEVEL,
        description="Logging level for the root logger"
    )

    # ========================================================================
    # Domain Configurations
    # ========================================================================

    retry: RetryPolicyConfig = Field(
        default_factory=RetryPolicyConfig.from_environment,
        description="Exponential backoff shared by every service wrapper"
    )

    cosmos: CosmosDbConfig = Field(
        default_factory=CosmosDbConfig.from_environment,
        description="Cosmos DB account and container references"
    )

    storage: StorageConfig = Field(
        default_factory=StorageConfig.from_environment,
        description="Blob and Table Storage account"
    )

    service_bus: ServiceBusConfig = Field(
        default_factory=ServiceBusConfig.from_environment,
        description="Service Bus connection and receive settings"
    )

    app_insights: AppInsightsConfig = Field(
        default_factory=AppInsightsConfig.from_environment,
        description="Application Insights telemetry and query settings"
    )

    key_vault: KeyVaultConfig = Field(
        default_factory=KeyVaultConfig.from_environment,
        description="Key Vault url and optional service principal"
    )

    docker: DockerConfig = Field(
        default_factory=DockerConfig.from_environment,
        description="Azure Container Instances launcher"
    )

    @classmethod
    def from_environment(cls):
        """Load all configs from environment."""
        return cls(
            environment=os.environ.get("ENVIRONMENT", AppDefaults.ENVIRONMENT),
            log_level=os.environ.get("LOG_LEVEL", AppDefaults.LOG_LEVEL),
            retry=RetryPolicyConfig.from_environment(),
            cosmos=CosmosDbConfig.from_environment(),
            storage=StorageConfig.from_environment(),
            service_bus=ServiceBusConfig.from_environment(),
            app_insights=AppInsightsConfig.from_environment(),
            key_vault=KeyVaultConfig.from_environment(),
            docker=DockerConfig.from_environment(),
        )
