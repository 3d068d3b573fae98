# ============================================================================
# CLAUDE CONTEXT - VAULT REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Azure Key Vault repository
# PURPOSE: Read secrets from Azure Key Vault with a short in-memory cache
# EXPORTS: KeyVaultRepository, VaultAccessError, get_key_vault_repository
# DEPENDENCIES: azure.keyvault.secrets, azure.identity, azure.core, util_logger, config
# SOURCE: Azure Key Vault via ClientSecretCredential or DefaultAzureCredential
# PATTERNS: Repository pattern, Caching pattern (with TTL), Singleton
# ENTRY_POINTS: RepositoryFactory.create_key_vault_repository()
# ============================================================================

"""
Azure Key Vault Repository - Secure Credential Management

A missing secret is not an error: get_secret() returns None for a 404.
Everything else (authentication, permissions, network) raises
VaultAccessError after the retry policy gives up.

Credential selection:
- KEY_VAULT_TENANT_ID + KEY_VAULT_CLIENT_ID + KEY_VAULT_CLIENT_SECRET set:
  ClientSecretCredential (service principal)
- otherwise: DefaultAzureCredential (managed identity, az login)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone, timedelta
from azure.keyvault.secrets import SecretClient
from azure.identity import ClientSecretCredential, DefaultAzureCredential
from azure.core.exceptions import AzureError, ResourceNotFoundError

from config import get_config, KeyVaultConfig
from core.retry_policy import RetryPolicyService
from exceptions import ConfigurationError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "KeyVaultRepository")


class VaultAccessError(Exception):
    """Custom exception for vault access failures"""
    pass


class KeyVaultRepository:
    """
    Azure Key Vault repository for secret retrieval.

    Usage:
        vault_repo = KeyVaultRepository()
        api_key = vault_repo.get_secret("partner-api-key")
    """

    _instance: Optional['KeyVaultRepository'] = None

    def __init__(
        self,
        config: Optional[KeyVaultConfig] = None,
        retry_policy: Optional[RetryPolicyService] = None,
        client: Optional[SecretClient] = None,
        cache_ttl_minutes: int = 15,
    ):
        self.config = config or get_config().key_vault

        if client is None:
            if not self.config.vault_url:
                raise ConfigurationError("KEY_VAULT_URL (or KEY_VAULT_NAME) is required for KeyVaultRepository")
            try:
                if self.config.uses_service_principal:
                    credential = ClientSecretCredential(
                        tenant_id=self.config.tenant_id,
                        client_id=self.config.client_id,
                        client_secret=self.config.client_secret,
                    )
                else:
                    credential = DefaultAzureCredential()
                client = SecretClient(vault_url=self.config.vault_url, credential=credential)
            except Exception as e:
                logger.error(f"❌ Failed to initialize KeyVaultRepository: {e}")
                raise VaultAccessError(f"Vault client initialization failed: {e}") from e

        self.client = client
        self.retry_policy = retry_policy or RetryPolicyService.from_config(
            get_config().retry, name="KeyVaultRepository.retry"
        )

        # Simple in-memory cache for secrets
        self._secret_cache: Dict[str, Dict[str, Any]] = {}
        self._cache_ttl_minutes = cache_ttl_minutes
        logger.info(f"🔐 KeyVaultRepository initialized for vault: {self.config.vault_url}")

    @classmethod
    def instance(cls) -> 'KeyVaultRepository':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def configure_retry_policy(self, max_retries: int, base_delay: float, max_delay: float) -> None:
        self.retry_policy.configure(max_retries, base_delay, max_delay)

    def get_secret(self, secret_name: str, use_cache: bool = True) -> Optional[str]:
        """
        Retrieve secret value from Azure Key Vault.

        Args:
            secret_name: Name of the secret in Key Vault
            use_cache: Whether to use cached value if available

        Returns:
            Secret value, or None if the secret does not exist

        Raises:
            VaultAccessError: If the vault cannot be read
        """
        logger.debug(f"🔐 Retrieving secret: {secret_name}")

        if use_cache and self._is_secret_cached(secret_name):
            logger.debug(f"🔐 Using cached secret: {secret_name}")
            return self._secret_cache[secret_name]['value']

        try:
            secret = self.retry_policy.run(
                lambda: self.client.get_secret(secret_name),
                non_retryable=(ResourceNotFoundError,),
                operation_name=f"vault get {secret_name}",
            )
        except ResourceNotFoundError:
            logger.warning(f"⚠️ Secret not found: {secret_name}")
            return None
        except AzureError as e:
            error_msg = f"Failed to retrieve secret '{secret_name}' from {self.config.vault_url}: {e}"
            logger.error(f"❌ {error_msg}")
            raise VaultAccessError(error_msg) from e

        if use_cache and secret.value is not None:
            self._cache_secret(secret_name, secret.value)

        logger.info(f"✅ Successfully retrieved secret: {secret_name}")
        return secret.value

    def clear_cache(self) -> None:
        self._secret_cache.clear()

    def _is_secret_cached(self, secret_name: str) -> bool:
        """Check if secret is cached and not expired."""
        if secret_name not in self._secret_cache:
            return False

        cached_time = self._secret_cache[secret_name]['cached_at']
        expiry_time = cached_time + timedelta(minutes=self._cache_ttl_minutes)

        if datetime.now(timezone.utc) > expiry_time:
            del self._secret_cache[secret_name]
            return False

        return True

    def _cache_secret(self, secret_name: str, secret_value: str) -> None:
        """Cache secret value with timestamp."""
        self._secret_cache[secret_name] = {
            'value': secret_value,
            'cached_at': datetime.now(timezone.utc)
        }


def get_key_vault_repository() -> KeyVaultRepository:
    """Factory function for dependency injection."""
    return KeyVaultRepository.instance()


__all__ = ['KeyVaultRepository', 'VaultAccessError', 'get_key_vault_repository']
