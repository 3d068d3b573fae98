# ============================================================================
# CLAUDE CONTEXT - TABLE STORAGE REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Azure Table Storage wrapper
# PURPOSE: Entity CRUD, filtered queries, optimistic-concurrency updates
# EXPORTS: TableStorageRepository, get_table_storage_repository
# DEPENDENCIES: azure-data-tables, azure-identity, config, core.retry_policy, core.optimistic_patch
# SOURCE: Storage account from STORAGE_* environment variables
# PATTERNS: Singleton, Repository, table client cache
# ENTRY_POINTS: TableStorageRepository.instance(), RepositoryFactory.create_table_storage_repository()
# ============================================================================

"""
Table Storage Repository

Every operation takes an optional table name. None means "the table set by
initialize_table_client()"; calling without either raises
ConfigurationError.

Usage:
    tables = RepositoryFactory.create_table_storage_repository()
    tables.initialize_table_client("jobs", check_table=True)
    tables.add_record(None, {"PartitionKey": "2025", "RowKey": "job-1", "State": "queued"})
    tables.update_record(None, "2025", "job-1", {
        "State": "running",
        "Attempts": lambda entity: entity.get("Attempts", 0) + 1,
    })
"""

import threading
from typing import Any, Dict, List, Mapping, Optional

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError as AzureResourceNotFoundError
from azure.data.tables import TableServiceClient, TableClient, UpdateMode
from azure.identity import DefaultAzureCredential

from config import get_config, StorageConfig
from config.defaults import StorageDefaults
from core.optimistic_patch import FieldMutation, OptimisticPatchService
from core.retry_policy import RetryPolicyService
from exceptions import ConfigurationError, ValidationError
from interfaces.record_store import RecordKey
from infrastructure.table_store import TableRecordStore
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "TableStorageRepository")


class TableStorageRepository:
    """
    Azure Table Storage repository.

    Entities are plain dicts carrying PartitionKey and RowKey.
    """

    _instance: Optional['TableStorageRepository'] = None

    def __init__(
        self,
        config: Optional[StorageConfig] = None,
        retry_policy: Optional[RetryPolicyService] = None,
        service_client: Optional[TableServiceClient] = None,
    ):
        self.config = config or get_config().storage

        try:
            if service_client is None:
                if self.config.connection_string:
                    logger.info("Initializing TableStorageRepository with connection string")
                    service_client = TableServiceClient.from_connection_string(self.config.connection_string)
                elif self.config.account_name:
                    logger.info(
                        f"Initializing TableStorageRepository with DefaultAzureCredential for account: "
                        f"{self.config.account_name}"
                    )
                    service_client = TableServiceClient(
                        endpoint=self.config.table_account_url,
                        credential=DefaultAzureCredential(),
                    )
                else:
                    raise ConfigurationError(
                        "STORAGE_CONNECTION_STRING or STORAGE_ACCOUNT_NAME is required for TableStorageRepository"
                    )
            self.service_client = service_client
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize TableStorageRepository: {e}")
            raise

        self.retry_policy = retry_policy or RetryPolicyService.from_config(
            get_config().retry, name="TableStorageRepository.retry"
        )
        self.patcher = OptimisticPatchService(self.retry_policy)
        self._lock = threading.Lock()
        self._table_client: Optional[TableClient] = None

        if self.config.default_table:
            self.initialize_table_client(self.config.default_table)

    @classmethod
    def instance(cls) -> 'TableStorageRepository':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def configure_retry_policy(self, max_retries: int, base_delay: float, max_delay: float) -> None:
        self.retry_policy.configure(max_retries, base_delay, max_delay)

    # ========================================================================
    # TABLE CLIENTS
    # ========================================================================

    def initialize_table_client(self, table_name: Optional[str], check_table: bool = False) -> None:
        """
        Select the table used when operations are called with table_name=None.

        Args:
            table_name: Table to select; None leaves the current selection alone
            check_table: Create the table first if it does not exist
        """
        if table_name is None:
            return
        if check_table:
            self._ensure_table(table_name)
        with self._lock:
            self._table_client = self.service_client.get_table_client(table_name)
        logger.debug(f"Table client initialized for {table_name}")

    def _client(self, table_name: Optional[str]) -> TableClient:
        if table_name is not None:
            return self.service_client.get_table_client(table_name)
        with self._lock:
            client = self._table_client
        if client is None:
            raise ConfigurationError("The table client has not been initialized.")
        return client

    def _ensure_table(self, table_name: str) -> None:
        try:
            self.service_client.create_table_if_not_exists(table_name)
        except ResourceExistsError:
            pass

    # ========================================================================
    # ENTITY OPERATIONS
    # ========================================================================

    def add_record(self, table_name: Optional[str], entity: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Insert a new entity. Fails if PartitionKey/RowKey already exists.

        Returns:
            Response metadata (etag, timestamp)
        """
        client = self._client(table_name)
        try:
            metadata = self.retry_policy.run(
                lambda: client.create_entity(entity=dict(entity)),
                non_retryable=(ResourceExistsError,),
                operation_name=f"table add {client.table_name}",
            )
            logger.debug(f"Added entity {entity.get('PartitionKey')}/{entity.get('RowKey')} to {client.table_name}")
            return metadata
        except Exception as e:
            logger.error(f"Failed to add entity to {client.table_name}: {e}")
            raise

    def count_records(self, table_name: str, query_filter: str) -> int:
        """Count entities matching an OData filter, creating the table if needed."""
        self._ensure_table(table_name)
        client = self._client(table_name)
        try:
            return self.retry_policy.run(
                lambda: sum(1 for _ in client.query_entities(query_filter=query_filter, select=["PartitionKey"])),
                operation_name=f"table count {table_name}",
            )
        except Exception as e:
            logger.error(f"Failed to count entities in {table_name}: {e}")
            raise

    def delete_record(self, table_name: Optional[str], partition_key: str, row_key: str) -> None:
        """Delete an entity. Deleting a missing entity succeeds silently."""
        client = self._client(table_name)
        try:
            self.retry_policy.run(
                lambda: client.delete_entity(partition_key=partition_key, row_key=row_key),
                operation_name=f"table delete {client.table_name}",
            )
            logger.debug(f"Deleted entity {partition_key}/{row_key} from {client.table_name}")
        except Exception as e:
            logger.error(f"Failed to delete {partition_key}/{row_key} from {client.table_name}: {e}")
            raise

    def get_record(self, table_name: Optional[str], partition_key: str, row_key: str) -> Optional[Dict[str, Any]]:
        """
        Read one entity.

        Returns:
            The entity as a dict, or None when it does not exist
        """
        client = self._client(table_name)
        try:
            entity = self.retry_policy.run(
                lambda: client.get_entity(partition_key=partition_key, row_key=row_key),
                non_retryable=(AzureResourceNotFoundError,),
                operation_name=f"table get {client.table_name}",
            )
            return dict(entity)
        except AzureResourceNotFoundError:
            logger.debug(f"Entity not found: {client.table_name}/{partition_key}/{row_key}")
            return None
        except Exception as e:
            logger.error(f"Failed to read {partition_key}/{row_key} from {client.table_name}: {e}")
            raise

    def get_records(
        self,
        table_name: Optional[str],
        query_filter: str,
        max_records_per_page: int = StorageDefaults.MAX_RECORDS_PER_PAGE,
    ) -> List[Dict[str, Any]]:
        """
        Return every entity matching an OData filter.

        Raises:
            ValidationError: Empty filter, or page size above 1000
        """
        if max_records_per_page > StorageDefaults.MAX_RECORDS_PER_PAGE:
            raise ValidationError(
                f"The maximum number of records per page is {StorageDefaults.MAX_RECORDS_PER_PAGE}, "
                f"got {max_records_per_page}"
            )
        if not query_filter:
            raise ValidationError("The filter must be specified.")

        client = self._client(table_name)
        try:
            records = self.retry_policy.run(
                lambda: [
                    dict(entity) for entity in client.query_entities(
                        query_filter=query_filter,
                        results_per_page=max_records_per_page,
                    )
                ],
                operation_name=f"table query {client.table_name}",
            )
            logger.debug(f"Query on {client.table_name} returned {len(records)} entities")
            return records
        except Exception as e:
            logger.error(f"Query on {client.table_name} failed: {e}")
            raise

    def update_record(
        self,
        table_name: Optional[str],
        partition_key: str,
        row_key: str,
        values: Mapping[str, FieldMutation],
        use_optimistic_concurrency: bool = True,
    ) -> bool:
        """
        Merge new property values into an existing entity.

        Each attempt re-reads the entity and its ETag. With
        use_optimistic_concurrency the merge is conditional on that ETag and
        a conflict triggers another attempt; without it the merge is
        unconditional. Values may be literals or callables receiving the
        current entity.

        Returns:
            True when committed, False for an empty batch
        """
        client = self._client(table_name)
        return self.patcher.patch(
            TableRecordStore(client, use_optimistic_concurrency=use_optimistic_concurrency),
            RecordKey(partition_key, row_key),
            values,
        )

    def upsert_record(self, table_name: Optional[str], entity: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert or merge an entity."""
        client = self._client(table_name)
        try:
            return self.retry_policy.run(
                lambda: client.upsert_entity(entity=dict(entity), mode=UpdateMode.MERGE),
                operation_name=f"table upsert {client.table_name}",
            )
        except Exception as e:
            logger.error(f"Failed to upsert entity into {client.table_name}: {e}")
            raise

    def remove_table(self, table_name: str) -> None:
        """Delete a table. Deleting a missing table succeeds silently."""
        try:
            self.retry_policy.run(
                lambda: self.service_client.delete_table(table_name),
                operation_name=f"table remove {table_name}",
            )
            with self._lock:
                if self._table_client is not None and self._table_client.table_name == table_name:
                    self._table_client = None
            logger.info(f"Removed table {table_name}")
        except Exception as e:
            logger.error(f"Failed to remove table {table_name}: {e}")
            raise


def get_table_storage_repository() -> TableStorageRepository:
    """Factory function for dependency injection."""
    return TableStorageRepository.instance()


__all__ = ['TableStorageRepository', 'get_table_storage_repository']
