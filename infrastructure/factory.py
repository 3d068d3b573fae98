# ============================================================================
# CLAUDE CONTEXT - REPOSITORY FACTORY
# ============================================================================
# STATUS: Infrastructure - Central factory for all Azure wrappers
# PURPOSE: Single creation point for every repository and telemetry service
# EXPORTS: RepositoryFactory (static class with factory methods)
# DEPENDENCIES: infrastructure/*, util_logger
# SOURCE: Configuration from AppConfig (get_config())
# PATTERNS: Factory pattern, Singleton
# ENTRY_POINTS: RepositoryFactory.create_cosmos_repository(), create_service_bus_repository(), ...
# ============================================================================

"""
Repository Factory - Central Creation Point

Wrappers that hold long-lived SDK clients (Cosmos DB, Table Storage, Blob
Storage, Service Bus, Key Vault, Container Instances) are returned as
process-wide singletons. The push uploader and the Application Insights
services are cheap and returned fresh.

Imports are deferred to each method so that creating one wrapper never
pulls in the SDKs of the others.

Example:
    cosmos = RepositoryFactory.create_cosmos_repository()
    cosmos.patch_atomic({"status": "done"}, "orders", "customer-7", "order-42")
"""

from typing import TYPE_CHECKING

from util_logger import LoggerFactory, ComponentType

if TYPE_CHECKING:
    from .appinsights_query import AppInsightsQueryService
    from .appinsights_telemetry import AppInsightsTelemetryService
    from .blob import BlobStorageRepository
    from .blob_push import BlobPushRepository
    from .container_instance import ContainerInstanceRepository
    from .cosmos_db import CosmosDbRepository
    from .service_bus import ServiceBusRepository
    from .table_storage import TableStorageRepository
    from .vault import KeyVaultRepository

logger = LoggerFactory.create_logger(ComponentType.FACTORY, "RepositoryFactory")


# ============================================================================
# REPOSITORY FACTORY - Central creation point
# ============================================================================

class RepositoryFactory:
    """
    Factory for creating repository instances.

    One static method per wrapper; each logs what it creates.
    """

    @staticmethod
    def create_cosmos_repository() -> 'CosmosDbRepository':
        """
        Create Cosmos DB repository.

        Returns:
            CosmosDbRepository singleton instance
        """
        from .cosmos_db import CosmosDbRepository

        logger.info("🏭 Creating Cosmos DB repository")
        cosmos_repo = CosmosDbRepository.instance()
        logger.info("✅ Cosmos DB repository created successfully")
        return cosmos_repo

    @staticmethod
    def create_table_storage_repository() -> 'TableStorageRepository':
        """
        Create Table Storage repository.

        Returns:
            TableStorageRepository singleton instance
        """
        from .table_storage import TableStorageRepository

        logger.info("🏭 Creating Table Storage repository")
        table_repo = TableStorageRepository.instance()
        logger.info("✅ Table Storage repository created successfully")
        return table_repo

    @staticmethod
    def create_blob_repository() -> 'BlobStorageRepository':
        """
        Create blob storage repository with authentication.

        Uses STORAGE_CONNECTION_STRING when set, else DefaultAzureCredential
        against STORAGE_ACCOUNT_NAME.

        Returns:
            BlobStorageRepository singleton instance
        """
        from .blob import BlobStorageRepository

        logger.info("🏭 Creating Blob Storage repository")
        blob_repo = BlobStorageRepository.instance()
        logger.info("✅ Blob repository created successfully")
        return blob_repo

    @staticmethod
    def create_blob_push_repository() -> 'BlobPushRepository':
        """
        Create uploader for pre-signed SAS urls.

        Returns:
            New BlobPushRepository instance
        """
        from .blob_push import BlobPushRepository

        logger.debug("🏭 Creating Blob push repository")
        return BlobPushRepository()

    @staticmethod
    def create_service_bus_repository() -> 'ServiceBusRepository':
        """
        Create Service Bus repository for queue and topic messages.

        Returns:
            ServiceBusRepository singleton instance

        Example:
            bus = RepositoryFactory.create_service_bus_repository()
            bus.send_queue_message("orders", {"orderId": "42"})
        """
        from .service_bus import ServiceBusRepository

        logger.info("🚌 Creating Service Bus repository")
        service_bus_repo = ServiceBusRepository.instance()
        logger.info("✅ Service Bus repository created successfully")
        return service_bus_repo

    @staticmethod
    def create_key_vault_repository() -> 'KeyVaultRepository':
        """
        Create Azure Key Vault repository.

        Returns:
            KeyVaultRepository singleton instance
        """
        from .vault import KeyVaultRepository

        logger.info("🔐 Creating Key Vault repository")
        vault_repo = KeyVaultRepository.instance()
        logger.info("✅ Key Vault repository created successfully")
        return vault_repo

    @staticmethod
    def create_app_insights_telemetry_service() -> 'AppInsightsTelemetryService':
        """
        Create Application Insights telemetry sender.

        The Azure Monitor exporters are installed on first creation.
        """
        from .appinsights_telemetry import AppInsightsTelemetryService

        logger.debug("📡 Creating Application Insights telemetry service")
        return AppInsightsTelemetryService()

    @staticmethod
    def create_app_insights_query_service() -> 'AppInsightsQueryService':
        """Create Application Insights KQL query service."""
        from .appinsights_query import AppInsightsQueryService

        logger.debug("📡 Creating Application Insights query service")
        return AppInsightsQueryService()

    @staticmethod
    def create_container_instance_repository() -> 'ContainerInstanceRepository':
        """
        Create Azure Container Instances launcher.

        Returns:
            ContainerInstanceRepository singleton instance
        """
        from .container_instance import ContainerInstanceRepository

        logger.info("🐳 Creating Container Instance repository")
        aci_repo = ContainerInstanceRepository.instance()
        logger.info("✅ Container Instance repository created successfully")
        return aci_repo


# Export the main factory
__all__ = ['RepositoryFactory']
