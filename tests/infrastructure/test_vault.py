"""
KeyVaultRepository tests with a mocked SecretClient.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from azure.core.exceptions import ClientAuthenticationError, ResourceNotFoundError

from config import KeyVaultConfig
from exceptions import ConfigurationError
from infrastructure import vault as vault_module
from infrastructure.vault import KeyVaultRepository, VaultAccessError
from tests.factories.azure_errors import http_error

VAULT_URL = "https://my-vault.vault.azure.net/"


@pytest.fixture
def secret_client():
    client = MagicMock(name="SecretClient")
    client.get_secret.return_value = SimpleNamespace(value="s3cret")
    return client


@pytest.fixture
def vault(secret_client, retry_policy):
    return KeyVaultRepository(config=KeyVaultConfig(vault_url=VAULT_URL), retry_policy=retry_policy, client=secret_client)


class TestConstruction:

    def test_vault_url_required(self, retry_policy):
        with pytest.raises(ConfigurationError):
            KeyVaultRepository(config=KeyVaultConfig(), retry_policy=retry_policy)

    def test_service_principal_credential(self, retry_policy, monkeypatch):
        credential_cls = MagicMock(name="ClientSecretCredential")
        client_cls = MagicMock(name="SecretClient")
        monkeypatch.setattr(vault_module, "ClientSecretCredential", credential_cls)
        monkeypatch.setattr(vault_module, "SecretClient", client_cls)

        KeyVaultRepository(
            config=KeyVaultConfig(vault_url=VAULT_URL, tenant_id="t", client_id="c", client_secret="s"),
            retry_policy=retry_policy,
        )

        credential_cls.assert_called_once_with(tenant_id="t", client_id="c", client_secret="s")
        client_cls.assert_called_once_with(vault_url=VAULT_URL, credential=credential_cls.return_value)

    def test_default_credential(self, retry_policy, monkeypatch):
        credential_cls = MagicMock(name="DefaultAzureCredential")
        monkeypatch.setattr(vault_module, "DefaultAzureCredential", credential_cls)
        monkeypatch.setattr(vault_module, "SecretClient", MagicMock())

        KeyVaultRepository(config=KeyVaultConfig(vault_url=VAULT_URL), retry_policy=retry_policy)
        credential_cls.assert_called_once_with()

    def test_client_failure_is_vault_access_error(self, retry_policy, monkeypatch):
        monkeypatch.setattr(vault_module, "DefaultAzureCredential", MagicMock(side_effect=ValueError("no identity")))
        with pytest.raises(VaultAccessError):
            KeyVaultRepository(config=KeyVaultConfig(vault_url=VAULT_URL), retry_policy=retry_policy)


class TestGetSecret:

    def test_returns_value(self, vault, secret_client):
        assert vault.get_secret("partner-api-key") == "s3cret"
        secret_client.get_secret.assert_called_once_with("partner-api-key")

    def test_missing_secret_is_none(self, vault, secret_client, recorded_sleeps):
        secret_client.get_secret.side_effect = ResourceNotFoundError("nope")
        assert vault.get_secret("partner-api-key") is None
        assert secret_client.get_secret.call_count == 1
        assert recorded_sleeps == []

    def test_transient_failure_retried(self, vault, secret_client):
        secret_client.get_secret.side_effect = [http_error(503), SimpleNamespace(value="s3cret")]
        assert vault.get_secret("partner-api-key") == "s3cret"

    def test_access_failure_raises_after_retries(self, vault, secret_client):
        secret_client.get_secret.side_effect = ClientAuthenticationError("forbidden")
        with pytest.raises(VaultAccessError) as exc_info:
            vault.get_secret("partner-api-key")
        assert isinstance(exc_info.value.__cause__, ClientAuthenticationError)
        assert secret_client.get_secret.call_count == 3


class TestCache:

    def test_cached_value_reused(self, vault, secret_client):
        vault.get_secret("partner-api-key")
        vault.get_secret("partner-api-key")
        assert secret_client.get_secret.call_count == 1

    def test_cache_bypass(self, vault, secret_client):
        vault.get_secret("partner-api-key")
        vault.get_secret("partner-api-key", use_cache=False)
        assert secret_client.get_secret.call_count == 2

    def test_expired_entry_refetched(self, vault, secret_client):
        vault.get_secret("partner-api-key")
        vault._secret_cache["partner-api-key"]["cached_at"] = datetime.now(timezone.utc) - timedelta(minutes=16)
        vault.get_secret("partner-api-key")
        assert secret_client.get_secret.call_count == 2

    def test_clear_cache(self, vault, secret_client):
        vault.get_secret("partner-api-key")
        vault.clear_cache()
        vault.get_secret("partner-api-key")
        assert secret_client.get_secret.call_count == 2

    def test_missing_secret_not_cached(self, vault, secret_client):
        secret_client.get_secret.side_effect = [ResourceNotFoundError("nope"), SimpleNamespace(value="late")]
        assert vault.get_secret("partner-api-key") is None
        assert vault.get_secret("partner-api-key") == "late"
