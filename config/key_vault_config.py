"""
Azure Key Vault Configuration.

Service principal settings are optional. When tenant, client id and
client secret are all present the vault is read with ClientSecretCredential,
otherwise DefaultAzureCredential (managed identity, az login) is used.

Exports:
    KeyVaultConfig: Pydantic configuration model
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import KeyVaultDefaults


class KeyVaultConfig(BaseModel):
    """Key Vault connection settings."""

    vault_url: Optional[str] = Field(
        default=None,
        description="Vault URL, e.g. https://my-vault.vault.azure.net/"
    )

    tenant_id: Optional[str] = Field(
        default=None,
        description="Service principal tenant"
    )

    client_id: Optional[str] = Field(
        default=None,
        description="Service principal application id"
    )

    client_secret: Optional[str] = Field(
        default=None,
        repr=False,
        description="Service principal secret"
    )

    @property
    def uses_service_principal(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)

    @classmethod
    def from_environment(cls) -> "KeyVaultConfig":
        """Load from environment variables. KEY_VAULT_NAME builds the URL when KEY_VAULT_URL is absent."""
        vault_url = os.environ.get("KEY_VAULT_URL")
        vault_name = os.environ.get("KEY_VAULT_NAME")
        if not vault_url and vault_name:
            vault_url = KeyVaultDefaults.URL_TEMPLATE.format(vault_name=vault_name)
        return cls(
            vault_url=vault_url,
            tenant_id=os.environ.get("KEY_VAULT_TENANT_ID"),
            client_id=os.environ.get("KEY_VAULT_CLIENT_ID"),
            client_secret=os.environ.get("KEY_VAULT_CLIENT_SECRET"),
        )

    def debug_dict(self) -> dict:
        return {
            "vault_url": self.vault_url,
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "client_secret": "***MASKED***" if self.client_secret else None,
        }
