# ============================================================================
# CLAUDE CONTEXT - COSMOS DB REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Azure Cosmos DB wrapper
# PURPOSE: Document CRUD by logical container reference, atomic field patches
# EXPORTS: CosmosDbRepository, get_cosmos_repository
# DEPENDENCIES: azure-cosmos, config, core.retry_policy, core.optimistic_patch
# SOURCE: Cosmos DB account from COSMOS_DB_* environment variables
# PATTERNS: Singleton, Repository, container client cache
# ENTRY_POINTS: CosmosDbRepository.instance(), RepositoryFactory.create_cosmos_repository()
# ============================================================================

"""
Cosmos DB Repository

Callers name containers by logical reference (see config.cosmos_config).
Every SDK call runs under the repository's RetryPolicyService; 404s are
never retried and come back as None / False.

Usage:
    from infrastructure import RepositoryFactory

    cosmos = RepositoryFactory.create_cosmos_repository()
    order = cosmos.get("orders", "customer-7", "order-42")
    cosmos.patch_atomic(
        {"status": "shipped", "revision": lambda doc: doc["revision"] + 1},
        "orders", "customer-7", "order-42",
    )
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from azure.cosmos import CosmosClient
from azure.cosmos.exceptions import CosmosResourceNotFoundError

from config import get_config, CosmosDbConfig, CosmosContainerConfig
from config.defaults import CosmosDefaults
from core.optimistic_patch import FieldMutation, OptimisticPatchService
from core.retry_policy import RetryPolicyService
from exceptions import ConfigurationError, ValidationError
from interfaces.record_store import RecordKey
from infrastructure.cosmos_store import CosmosRecordStore
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "CosmosDbRepository")

# Partition key values Cosmos accepts from this wrapper
PARTITION_KEY_TYPES = (bool, str, int)


def check_partition_key(value: Any) -> Any:
    """Reject partition key values of unsupported types."""
    if value is None or not isinstance(value, PARTITION_KEY_TYPES):
        raise ValidationError(
            f"Partition key of type {type(value).__name__} is not supported (use bool, str or int)"
        )
    return value


class CosmosDbRepository:
    """
    Cosmos DB document repository.

    Usage:
        repo = CosmosDbRepository.instance()
        repo.upsert({"id": "order-42", "customerId": "customer-7"}, "orders")
    """

    _instance: Optional['CosmosDbRepository'] = None

    def __init__(
        self,
        config: Optional[CosmosDbConfig] = None,
        retry_policy: Optional[RetryPolicyService] = None,
        client: Optional[CosmosClient] = None,
    ):
        self.config = config or get_config().cosmos

        if not self.config.database_name:
            raise ConfigurationError("COSMOS_DB_DATABASE_NAME is required for CosmosDbRepository")

        try:
            if client is None:
                if not self.config.connection_string:
                    raise ConfigurationError("COSMOS_DB_CONNECTION_STRING is required for CosmosDbRepository")
                client = CosmosClient.from_connection_string(self.config.connection_string)
            self.client = client
            self.database = client.get_database_client(self.config.database_name)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize CosmosDbRepository: {e}")
            raise

        self.retry_policy = retry_policy or RetryPolicyService.from_config(
            get_config().retry, name="CosmosDbRepository.retry"
        )
        self.patcher = OptimisticPatchService(self.retry_policy)
        self._containers: Dict[str, Any] = {}

        logger.info(
            f"✅ CosmosDbRepository initialized for database {self.config.database_name} "
            f"({len(self.config.containers)} container references)"
        )

    @classmethod
    def instance(cls) -> 'CosmosDbRepository':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def configure_retry_policy(self, max_retries: int, base_delay: float, max_delay: float) -> None:
        self.retry_policy.configure(max_retries, base_delay, max_delay)

    def _container(self, container_ref: str) -> Tuple[Any, CosmosContainerConfig]:
        container_config = self.config.get_container(container_ref)
        if container_config is None:
            raise ConfigurationError(f"Unknown Cosmos container reference: {container_ref}")
        if container_ref not in self._containers:
            self._containers[container_ref] = self.database.get_container_client(container_config.id)
            logger.debug(f"Created container client for {container_ref} -> {container_config.id}")
        return self._containers[container_ref], container_config

    # ========================================================================
    # DOCUMENT OPERATIONS
    # ========================================================================

    def get(self, container_ref: str, partition_key: Any, record_id: str) -> Optional[Dict[str, Any]]:
        """
        Read one document.

        Returns:
            The document, or None when it does not exist
        """
        container, _ = self._container(container_ref)
        check_partition_key(partition_key)
        try:
            return self.retry_policy.run(
                lambda: container.read_item(item=record_id, partition_key=partition_key),
                non_retryable=(CosmosResourceNotFoundError,),
                operation_name=f"cosmos get {container_ref}/{record_id}",
            )
        except CosmosResourceNotFoundError:
            logger.debug(f"Document not found: {container_ref}/{partition_key}/{record_id}")
            return None
        except Exception as e:
            logger.error(f"Failed to read {container_ref}/{record_id}: {e}")
            raise

    def get_all(
        self,
        query: str,
        container_ref: str,
        parameters: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a SQL query across partitions and return every matching document.

        Args:
            query: Cosmos SQL, e.g. "SELECT * FROM c WHERE c.status = @status"
            container_ref: Logical container reference
            parameters: Query parameters, e.g. [{"name": "@status", "value": "open"}]
        """
        container, _ = self._container(container_ref)
        try:
            items = self.retry_policy.run(
                lambda: list(container.query_items(
                    query=query,
                    parameters=parameters,
                    enable_cross_partition_query=True,
                )),
                operation_name=f"cosmos query {container_ref}",
            )
            logger.debug(f"Query on {container_ref} returned {len(items)} documents")
            return items
        except Exception as e:
            logger.error(f"Query on {container_ref} failed: {e}")
            raise

    def upsert(
        self,
        entity: Mapping[str, Any],
        container_ref: str,
        time_to_live: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Create or replace a document.

        The document must carry "id" and the container's partition key
        property. time_to_live falls back to the container's configured
        value; when neither is set the container default applies.

        Returns:
            The stored document as returned by Cosmos
        """
        container, container_config = self._container(container_ref)
        body = dict(entity)
        self._document_key(body, container_config)

        ttl = time_to_live if time_to_live is not None else container_config.time_to_live
        if ttl is not None:
            body[CosmosDefaults.TTL_PROPERTY] = ttl

        try:
            stored = self.retry_policy.run(
                lambda: container.upsert_item(body=body),
                operation_name=f"cosmos upsert {container_ref}/{body['id']}",
            )
            logger.debug(f"Upserted {container_ref}/{body['id']} (ttl={ttl})")
            return stored
        except Exception as e:
            logger.error(f"Failed to upsert {container_ref}/{body.get('id')}: {e}")
            raise

    def patch_atomic(
        self,
        field_values: Mapping[str, FieldMutation],
        container_ref: str,
        partition_key: Any,
        record_id: str,
    ) -> bool:
        """
        Patch fields under optimistic concurrency.

        Values may be literals or callables receiving the current document.
        The whole batch lands in one conditional patch; on an ETag conflict
        the document is re-read and the values recomputed.

        Returns:
            True when committed, False for an empty batch
        """
        container, _ = self._container(container_ref)
        check_partition_key(partition_key)
        return self.patcher.patch(
            CosmosRecordStore(container),
            RecordKey(partition_key, record_id),
            field_values,
        )

    def delete(self, entity: Mapping[str, Any], container_ref: str) -> bool:
        """
        Delete the document identified by entity's id and partition key.

        Returns:
            True if deleted, False if it did not exist
        """
        container, container_config = self._container(container_ref)
        record_id, partition_key = self._document_key(entity, container_config)
        try:
            self.retry_policy.run(
                lambda: container.delete_item(item=record_id, partition_key=partition_key),
                non_retryable=(CosmosResourceNotFoundError,),
                operation_name=f"cosmos delete {container_ref}/{record_id}",
            )
            logger.info(f"Deleted document {container_ref}/{record_id}")
            return True
        except CosmosResourceNotFoundError:
            logger.warning(f"Document not found for deletion: {container_ref}/{record_id}")
            return False
        except Exception as e:
            logger.error(f"Failed to delete {container_ref}/{record_id}: {e}")
            raise

    @staticmethod
    def _document_key(entity: Mapping[str, Any], container_config: CosmosContainerConfig) -> Tuple[str, Any]:
        record_id = entity.get("id")
        if not record_id:
            raise ValidationError(f"Document for {container_config.reference} has no id")
        pk_name = container_config.default_partition_key.lstrip("/")
        if pk_name not in entity:
            raise ValidationError(
                f"Document {record_id} has no partition key property '{pk_name}'"
            )
        return record_id, check_partition_key(entity[pk_name])


def get_cosmos_repository() -> CosmosDbRepository:
    """Factory function for dependency injection."""
    return CosmosDbRepository.instance()


__all__ = ['CosmosDbRepository', 'check_partition_key', 'get_cosmos_repository']
