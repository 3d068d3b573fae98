"""
Infrastructure Package - Lazy Loading Implementation.

Azure SDK wrappers, record stores and the repository factory.

Nothing is imported until first accessed: importing the package must not
read environment variables, build credentials or pull in SDKs the caller
never uses. __getattr__ resolves each public name to its module on demand.

Exports:
    RepositoryFactory: Central creation point
    CosmosDbRepository, TableStorageRepository, BlobStorageRepository,
    BlobPushRepository, ServiceBusRepository, KeyVaultRepository,
    AppInsightsTelemetryService, AppInsightsQueryService,
    ContainerInstanceRepository: Azure wrappers
    CosmosRecordStore, AsyncCosmosRecordStore, TableRecordStore,
    AsyncTableRecordStore: Versioned record stores for optimistic patching
"""

from importlib import import_module
from typing import TYPE_CHECKING

# For type checking only - doesn't actually import at runtime
if TYPE_CHECKING:
    from .factory import RepositoryFactory as _RepositoryFactory
    from .cosmos_db import CosmosDbRepository as _CosmosDbRepository
    from .cosmos_store import CosmosRecordStore as _CosmosRecordStore
    from .table_storage import TableStorageRepository as _TableStorageRepository
    from .table_store import TableRecordStore as _TableRecordStore
    from .blob import BlobStorageRepository as _BlobStorageRepository
    from .blob_push import BlobPushRepository as _BlobPushRepository
    from .service_bus import ServiceBusRepository as _ServiceBusRepository
    from .vault import KeyVaultRepository as _KeyVaultRepository
    from .appinsights_telemetry import AppInsightsTelemetryService as _AppInsightsTelemetryService
    from .appinsights_query import AppInsightsQueryService as _AppInsightsQueryService
    from .container_instance import ContainerInstanceRepository as _ContainerInstanceRepository


_LAZY_IMPORTS = {
    # Factory - most common import
    "RepositoryFactory": ".factory",

    # Record stores
    "CosmosRecordStore": ".cosmos_store",
    "AsyncCosmosRecordStore": ".cosmos_store",
    "TableRecordStore": ".table_store",
    "AsyncTableRecordStore": ".table_store",

    # Azure wrappers
    "CosmosDbRepository": ".cosmos_db",
    "TableStorageRepository": ".table_storage",
    "BlobStorageRepository": ".blob",
    "BlobPushRepository": ".blob_push",
    "ServiceBusRepository": ".service_bus",
    "KeyVaultRepository": ".vault",
    "VaultAccessError": ".vault",
    "AppInsightsTelemetryService": ".appinsights_telemetry",
    "AppInsightsQueryService": ".appinsights_query",
    "ResourceType": ".appinsights_query",
    "ContainerInstanceRepository": ".container_instance",
    "ContainerResourceSize": ".container_instance",
}


def __getattr__(name: str):
    """
    Lazy import mechanism - only imports when actually accessed.
    This prevents module-level code execution until needed.
    """
    if name in _LAZY_IMPORTS:
        module = import_module(_LAZY_IMPORTS[name], package=__name__)
        return getattr(module, name)
    raise AttributeError(f"module 'infrastructure' has no attribute '{name}'")


# Define what's available for * imports (though we discourage using import *)
__all__ = list(_LAZY_IMPORTS)
