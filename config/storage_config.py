# ============================================================================
# CLAUDE CONTEXT - STORAGE CONFIGURATION
# ============================================================================
# STATUS: Configuration - Blob and Table Storage wrappers
# PURPOSE: Azure Storage account connection and wrapper limits
# EXPORTS: StorageConfig
# INTERFACES: Pydantic BaseModel
# PYDANTIC_MODELS: StorageConfig
# DEPENDENCIES: pydantic, os
# SOURCE: Environment variables (STORAGE_CONNECTION_STRING, STORAGE_ACCOUNT_NAME)
# SCOPE: Storage-specific configuration
# VALIDATION: Pydantic v2 validation
# ============================================================================

"""
Azure Storage Configuration.

One storage account backs both the blob and the table wrappers. Either a
connection string or an account name (managed identity through
DefaultAzureCredential) must be configured.
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import StorageDefaults


class StorageConfig(BaseModel):
    """
    Azure Storage account configuration.
    """

    connection_string: Optional[str] = Field(
        default=None,
        repr=False,
        description="Storage account connection string (preferred for local development)"
    )

    account_name: Optional[str] = Field(
        default=None,
        description="Storage account name for DefaultAzureCredential auth"
    )

    default_container: Optional[str] = Field(
        default=None,
        description="Container selected by BlobStorageRepository until set_container is called"
    )

    default_table: Optional[str] = Field(
        default=None,
        description="Table initialized by TableStorageRepository at construction"
    )

    block_size_bytes: int = Field(
        default=StorageDefaults.BLOCK_SIZE_BYTES,
        ge=64 * 1024,
        le=100 * 1024 * 1024,
        description="Block size used when pushing streams through a SAS url"
    )

    max_upload_workers: int = Field(
        default=StorageDefaults.MAX_UPLOAD_WORKERS,
        ge=1,
        le=64,
        description="Parallel block uploads for SAS pushes"
    )

    @property
    def blob_account_url(self) -> Optional[str]:
        if not self.account_name:
            return None
        return f"https://{self.account_name}.blob.core.windows.net"

    @property
    def table_account_url(self) -> Optional[str]:
        if not self.account_name:
            return None
        return f"https://{self.account_name}.table.core.windows.net"

    def is_configured(self) -> bool:
        return bool(self.connection_string or self.account_name)

    @classmethod
    def from_environment(cls):
        """Load storage configuration from environment variables."""
        return cls(
            connection_string=os.environ.get("STORAGE_CONNECTION_STRING"),
            account_name=os.environ.get("STORAGE_ACCOUNT_NAME"),
            default_container=os.environ.get("STORAGE_DEFAULT_CONTAINER"),
            default_table=os.environ.get("STORAGE_DEFAULT_TABLE"),
            block_size_bytes=int(os.environ.get("STORAGE_BLOCK_SIZE_BYTES", str(StorageDefaults.BLOCK_SIZE_BYTES))),
            max_upload_workers=int(os.environ.get("STORAGE_MAX_UPLOAD_WORKERS", str(StorageDefaults.MAX_UPLOAD_WORKERS))),
        )

    def debug_dict(self) -> dict:
        """Return debug-friendly configuration."""
        return {
            "connection_string": "***MASKED***" if self.connection_string else None,
            "account_name": self.account_name,
            "default_container": self.default_container,
            "default_table": self.default_table,
            "block_size_bytes": self.block_size_bytes,
            "max_upload_workers": self.max_upload_workers,
        }
