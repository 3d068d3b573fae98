# ============================================================================
# CLAUDE CONTEXT - BLOB PUSH REPOSITORY
# ============================================================================
# STATUS: Infrastructure - upload through a pre-signed SAS url
# PURPOSE: Parallel block upload of a stream to a blob the caller holds a SAS for
# EXPORTS: BlobPushRepository, block_id_for
# DEPENDENCIES: azure-storage-blob, concurrent.futures, core.retry_policy
# PATTERNS: Staged blocks + commit, bounded thread pool
# ENTRY_POINTS: RepositoryFactory.create_blob_push_repository()
# ============================================================================

"""
Blob Push Repository

Needs no storage account configuration: the SAS url carries both the
target blob and the permission to write it. The stream is cut into blocks
(4 MiB by default) that are staged in parallel and then committed in order.
A retry re-stages every block from the start of the stream.
"""

import concurrent.futures
from typing import BinaryIO, List, Optional

from azure.storage.blob import BlobBlock, BlobClient

from config import get_config
from config.defaults import StorageDefaults
from core.retry_policy import RetryPolicyService
from exceptions import ValidationError
from infrastructure.blob import utc_tag_value
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "BlobPushRepository")


def block_id_for(index: int) -> str:
    """Block ids must all have the same length; the SDK base64-encodes them."""
    return f"block-{index:010d}"


def _validate_stream(stream: Optional[BinaryIO]) -> None:
    if stream is None:
        raise ValidationError("Stream is required")
    if not stream.readable():
        raise ValidationError("Stream is not readable")
    if not stream.seekable():
        raise ValidationError("Stream is not seekable")
    stream.seek(0, 2)
    length = stream.tell()
    stream.seek(0)
    if length == 0:
        raise ValidationError("Stream is empty")


class BlobPushRepository:
    """
    Uploads streams to SAS urls as block blobs.
    """

    def __init__(
        self,
        retry_policy: Optional[RetryPolicyService] = None,
        block_size: Optional[int] = None,
        max_workers: Optional[int] = None,
        blob_client_factory=BlobClient.from_blob_url,
    ):
        storage = get_config().storage
        self.retry_policy = retry_policy or RetryPolicyService.from_config(
            get_config().retry, name="BlobPushRepository.retry"
        )
        self.block_size = block_size or storage.block_size_bytes
        self.max_workers = max_workers or storage.max_upload_workers
        self._blob_client_factory = blob_client_factory

    def configure_retry_policy(self, max_retries: int, base_delay: float, max_delay: float) -> None:
        self.retry_policy.configure(max_retries, base_delay, max_delay)

    def post_blob_using_sas(self, sas_url: str, stream: BinaryIO, tag_with_timestamp: bool = False) -> List[str]:
        """
        Upload a stream to the blob named by sas_url.

        Args:
            sas_url: Blob url with a SAS granting write (and tag, if tagging)
            stream: Non-empty, readable, seekable stream
            tag_with_timestamp: Add a createdUtc index tag after the commit

        Returns:
            The committed block ids, in order

        Raises:
            ValidationError: The stream is unusable (never retried)
        """
        _validate_stream(stream)
        blob_client = self._blob_client_factory(sas_url)

        def _upload() -> List[str]:
            stream.seek(0)
            return self._upload_blocks(blob_client, stream)

        try:
            block_ids = self.retry_policy.run(_upload, operation_name=f"sas upload {blob_client.blob_name}")
            if tag_with_timestamp:
                blob_client.set_blob_tags({StorageDefaults.CREATED_TAG: utc_tag_value()})
            logger.info(f"✅ Pushed {len(block_ids)} blocks to {blob_client.container_name}/{blob_client.blob_name}")
            return block_ids
        except Exception as e:
            logger.error(f"Failed to push blob through SAS url: {e}")
            raise

    def _upload_blocks(self, blob_client: BlobClient, stream: BinaryIO) -> List[str]:
        block_ids: List[str] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = []
            while True:
                data = stream.read(self.block_size)
                if not data:
                    break
                block_id = block_id_for(len(block_ids))
                block_ids.append(block_id)
                futures.append(executor.submit(blob_client.stage_block, block_id, data))

            # any failed stage fails the whole attempt
            for future in concurrent.futures.as_completed(futures):
                future.result()

        blob_client.commit_block_list([BlobBlock(block_id=block_id) for block_id in block_ids])
        logger.debug(f"Committed {len(block_ids)} blocks of up to {self.block_size} bytes")
        return block_ids


__all__ = ['BlobPushRepository', 'block_id_for']
