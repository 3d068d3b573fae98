# ============================================================================
# CLAUDE CONTEXT - BLOB REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Azure Blob Storage repository
# PURPOSE: Blob operations against a selected container, SAS generation, tag-based cleanup
# EXPORTS: BlobStorageRepository, get_blob_repository
# PYDANTIC_MODELS: None - operates on raw bytes and streams
# DEPENDENCIES: azure-storage-blob, azure-identity, config, core.retry_policy
# SOURCE: Storage account from STORAGE_* environment variables
# SCOPE: Blob operations for the selected container
# PATTERNS: Singleton, Repository, DefaultAzureCredential
# ENTRY_POINTS: BlobStorageRepository.instance(), RepositoryFactory.create_blob_repository()
# ============================================================================

"""
Blob Storage Repository

Works on one selected container at a time (set_container); operations that
take an explicit container name say so.

Authentication:
1. STORAGE_CONNECTION_STRING (account key, used for SAS signing)
2. STORAGE_ACCOUNT_NAME + DefaultAzureCredential (SAS signed with a
   user delegation key; needs 'Storage Blob Delegator')

Usage:
    blob_repo = RepositoryFactory.create_blob_repository()
    blob_repo.set_container("uploads")
    blob_repo.post_blob("reports/2025-01.csv", BytesIO(data), tag_with_timestamp=True)
    url = blob_repo.get_blob_sas_url("reports/2025-01.csv", datetime.now(timezone.utc) + timedelta(hours=1))
"""

# ============================================================================
# IMPORTS - Top of file for fail-fast behavior
# ============================================================================

from datetime import datetime, timedelta, timezone
from io import BytesIO
from typing import Any, BinaryIO, Dict, List, Optional

from azure.storage.blob import (
    BlobServiceClient,
    BlobClient,
    ContainerClient,
    BlobSasPermissions,
    ContainerSasPermissions,
    generate_blob_sas,
    generate_container_sas,
)
from azure.identity import DefaultAzureCredential
from azure.core.exceptions import ResourceNotFoundError

from config import get_config, StorageConfig
from config.defaults import StorageDefaults
from core.retry_policy import RetryPolicyService
from exceptions import ConfigurationError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "BlobStorageRepository")


def utc_tag_value(moment: Optional[datetime] = None) -> str:
    """Fixed-width ISO timestamp so blob index tag comparisons sort correctly."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


class BlobStorageRepository:
    """
    Blob storage repository bound to a selected container.
    """

    _instance: Optional['BlobStorageRepository'] = None

    def __init__(
        self,
        config: Optional[StorageConfig] = None,
        retry_policy: Optional[RetryPolicyService] = None,
        blob_service: Optional[BlobServiceClient] = None,
    ):
        self.config = config or get_config().storage

        try:
            if blob_service is None:
                if self.config.connection_string:
                    logger.info("Initializing BlobStorageRepository with connection string")
                    blob_service = BlobServiceClient.from_connection_string(self.config.connection_string)
                elif self.config.account_name:
                    logger.info(
                        f"Initializing BlobStorageRepository with DefaultAzureCredential for account: "
                        f"{self.config.account_name}"
                    )
                    blob_service = BlobServiceClient(
                        account_url=self.config.blob_account_url,
                        credential=DefaultAzureCredential(),
                    )
                else:
                    raise ConfigurationError(
                        "STORAGE_CONNECTION_STRING or STORAGE_ACCOUNT_NAME is required for BlobStorageRepository"
                    )
            self.blob_service = blob_service
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize BlobStorageRepository: {e}")
            raise

        self.retry_policy = retry_policy or RetryPolicyService.from_config(
            get_config().retry, name="BlobStorageRepository.retry"
        )
        self.blob_container: Optional[ContainerClient] = None
        self.response_content_type: Optional[str] = None

        if self.config.default_container:
            self.set_container(self.config.default_container)

    @classmethod
    def instance(cls) -> 'BlobStorageRepository':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def configure_retry_policy(self, max_retries: int, base_delay: float, max_delay: float) -> None:
        self.retry_policy.configure(max_retries, base_delay, max_delay)

    def set_container(self, container_name: str) -> None:
        """Select the container used by blob-level operations."""
        self.blob_container = self.blob_service.get_container_client(container_name)
        logger.debug(f"Selected container: {container_name}")

    def _blob_client(self, blob_name: str) -> BlobClient:
        if self.blob_container is None:
            raise ConfigurationError("Blob container is not set, call set_container() first")
        return self.blob_container.get_blob_client(blob_name)

    # ========================================================================
    # CORE BLOB OPERATIONS
    # ========================================================================

    def copy_blob(self, target_container: str, source_blob: str, target_blob: str) -> bool:
        """
        Server-side copy from the selected container into target_container.

        Returns:
            True if the copy completed synchronously, False if still pending
        """
        source = self._blob_client(source_blob)
        target = self.blob_service.get_container_client(target_container).get_blob_client(target_blob)
        try:
            copy_operation = self.retry_policy.run(
                lambda: target.start_copy_from_url(source.url),
                operation_name=f"blob copy {source_blob}",
            )
            completed = copy_operation.get('copy_status') == 'success'
            logger.info(
                f"✅ Copy {'completed' if completed else 'started'}: "
                f"{source.container_name}/{source_blob} → {target_container}/{target_blob}"
            )
            return completed
        except Exception as e:
            logger.error(f"Failed to copy blob {source_blob} → {target_container}/{target_blob}: {e}")
            raise

    def delete_blob(self, blob_name: str) -> bool:
        """
        Delete a blob and its snapshots.

        Returns:
            True if deleted, False if not found
        """
        blob_client = self._blob_client(blob_name)
        try:
            self.retry_policy.run(
                lambda: blob_client.delete_blob(delete_snapshots="include"),
                non_retryable=(ResourceNotFoundError,),
                operation_name=f"blob delete {blob_name}",
            )
            logger.info(f"Deleted blob: {blob_client.container_name}/{blob_name}")
            return True
        except ResourceNotFoundError:
            logger.warning(f"Blob not found for deletion: {blob_client.container_name}/{blob_name}")
            return False
        except Exception as e:
            logger.error(f"Failed to delete blob {blob_name}: {e}")
            raise

    def delete_blobs_created_before(
        self,
        container_name: str,
        seconds_ago: int,
        max_items: int = StorageDefaults.CLEANUP_MAX_ITEMS,
    ) -> int:
        """
        Delete blobs whose createdUtc tag is older than seconds_ago.

        Only blobs uploaded with tag_with_timestamp=True carry the tag.
        Individual delete failures are logged and skipped.

        Returns:
            Number of blobs deleted
        """
        container_client = self.blob_service.get_container_client(container_name)
        if not container_client.exists():
            return 0

        cutoff = utc_tag_value(datetime.now(timezone.utc) - timedelta(seconds=seconds_ago))
        tag_expression = f"\"{StorageDefaults.CREATED_TAG}\" < '{cutoff}'"

        deleted = 0
        examined = 0
        for blob in container_client.find_blobs_by_tags(filter_expression=tag_expression):
            if examined >= max_items:
                break
            examined += 1
            try:
                container_client.delete_blob(blob.name, delete_snapshots="include")
                deleted += 1
            except ResourceNotFoundError:
                pass
            except Exception as e:
                logger.warning(f"⚠️ Could not delete {container_name}/{blob.name}: {e}")

        logger.info(f"🧹 Deleted {deleted} of {examined} blobs in {container_name} tagged before {cutoff}")
        return deleted

    def get_blob_url(self, blob_name: str) -> str:
        return self._blob_client(blob_name).url

    def get_blob_size(self, blob_name: str) -> Optional[int]:
        """Size in bytes, or None when the blob does not exist."""
        blob_client = self._blob_client(blob_name)
        try:
            properties = self.retry_policy.run(
                blob_client.get_blob_properties,
                non_retryable=(ResourceNotFoundError,),
                operation_name=f"blob size {blob_name}",
            )
            return properties.size
        except ResourceNotFoundError:
            return None

    def get_blob_sas_url(self, blob_name: str, expiry: datetime, grant_all_permissions: bool = False) -> str:
        """
        Blob URL with a SAS token appended.

        Args:
            blob_name: Blob in the selected container
            expiry: Token expiry (timezone-aware)
            grant_all_permissions: read/list/add/write/create/delete/tag
                instead of read only (upload scenarios)
        """
        blob_client = self._blob_client(blob_name)
        if grant_all_permissions:
            permission = BlobSasPermissions(
                read=True, add=True, create=True, write=True, delete=True, tag=True, list=True
            )
        else:
            permission = BlobSasPermissions(read=True)

        try:
            sas_token = generate_blob_sas(
                account_name=self.blob_service.account_name,
                container_name=blob_client.container_name,
                blob_name=blob_name,
                permission=permission,
                expiry=expiry,
                **self._signing_credential(expiry),
            )
            logger.debug(f"✅ SAS URL generated for {blob_client.container_name}/{blob_name} (expires: {expiry.isoformat()})")
            return f"{blob_client.url}?{sas_token}"
        except Exception as e:
            logger.error(f"Failed to generate SAS URL for {blob_name}: {e}")
            raise

    def get_container_sas_url(self, container_name: str, expiry: datetime) -> str:
        """Container URL with a write + list SAS token."""
        container_client = self.blob_service.get_container_client(container_name)
        try:
            sas_token = generate_container_sas(
                account_name=self.blob_service.account_name,
                container_name=container_name,
                permission=ContainerSasPermissions(write=True, list=True),
                expiry=expiry,
                **self._signing_credential(expiry),
            )
            return f"{container_client.url}?{sas_token}"
        except Exception as e:
            logger.error(f"Failed to generate container SAS URL for {container_name}: {e}")
            raise

    def _signing_credential(self, expiry: datetime) -> Dict[str, Any]:
        account_key = getattr(self.blob_service.credential, "account_key", None)
        if account_key:
            return {"account_key": account_key}
        try:
            user_delegation_key = self.blob_service.get_user_delegation_key(
                key_start_time=datetime.now(timezone.utc),
                key_expiry_time=expiry,
            )
        except Exception as e:
            logger.error(f"Failed to get user delegation key: {e}")
            raise ConfigurationError(
                f"Failed to generate user delegation key. Ensure the identity has 'Storage Blob Delegator' role: {e}"
            ) from e
        return {"user_delegation_key": user_delegation_key}

    def get_stream_from_blob(self, blob_name: str) -> BytesIO:
        """
        Download a blob into memory.

        The blob's content type is kept in response_content_type.
        """
        blob_client = self._blob_client(blob_name)

        def _download() -> BytesIO:
            downloader = blob_client.download_blob()
            stream = BytesIO()
            downloader.readinto(stream)
            stream.seek(0)
            settings = downloader.properties.content_settings
            self.response_content_type = settings.content_type if settings else None
            return stream

        try:
            return self.retry_policy.run(
                _download,
                non_retryable=(ResourceNotFoundError,),
                operation_name=f"blob download {blob_name}",
            )
        except Exception as e:
            logger.error(f"Failed to download blob {blob_name}: {e}")
            raise

    def list_blobs_in_folder(self, folder_prefix: str) -> List[str]:
        """Names of every blob in the selected container starting with folder_prefix."""
        if self.blob_container is None:
            raise ConfigurationError("Blob container is not set, call set_container() first")
        return [blob.name for blob in self.blob_container.list_blobs(name_starts_with=folder_prefix)]

    def post_blob(self, blob_name: str, stream: BinaryIO, tag_with_timestamp: bool = False) -> Dict[str, Any]:
        """
        Upload (overwrite) a blob from a stream.

        Args:
            blob_name: Blob in the selected container
            stream: Seekable stream; rewound before every attempt
            tag_with_timestamp: Add a createdUtc index tag, picked up by
                delete_blobs_created_before()

        Returns:
            Dict with etag and last_modified of the written blob
        """
        blob_client = self._blob_client(blob_name)
        tags = {StorageDefaults.CREATED_TAG: utc_tag_value()} if tag_with_timestamp else None

        def _upload():
            stream.seek(0)
            return blob_client.upload_blob(stream, overwrite=True, tags=tags)

        try:
            response = self.retry_policy.run(_upload, operation_name=f"blob upload {blob_name}")
            logger.info(f"✅ Wrote blob: {blob_client.container_name}/{blob_name}")
            return {
                'blob_name': blob_name,
                'etag': response.get('etag'),
                'last_modified': response.get('last_modified'),
            }
        except Exception as e:
            logger.error(f"Failed to write blob {blob_name}: {e}")
            raise


# ============================================================================
# FACTORY FUNCTION
# ============================================================================

def get_blob_repository() -> BlobStorageRepository:
    """
    Factory function for dependency injection.

    Returns:
        BlobStorageRepository singleton instance
    """
    return BlobStorageRepository.instance()


__all__ = ['BlobStorageRepository', 'get_blob_repository', 'utc_tag_value']
