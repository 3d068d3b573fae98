"""
Config test fixtures — clean environment via monkeypatch.
"""

import pytest


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all env vars that config modules might read, for isolation."""
    env_vars_to_clear = [
        "ENVIRONMENT", "LOG_LEVEL",
        "RETRY_POLICY_MAX_RETRIES", "RETRY_POLICY_DELAY_MS", "RETRY_POLICY_MAX_DELAY_MS",
        "COSMOS_DB_CONNECTION_STRING", "COSMOS_DB_DATABASE_NAME", "COSMOS_DB_CONTAINERS",
        "STORAGE_CONNECTION_STRING", "STORAGE_ACCOUNT_NAME", "STORAGE_DEFAULT_CONTAINER",
        "STORAGE_DEFAULT_TABLE", "STORAGE_BLOCK_SIZE_BYTES", "STORAGE_MAX_UPLOAD_WORKERS",
        "SERVICE_BUS_CONNECTION_STRING", "SERVICE_BUS_NAMESPACE",
        "SERVICE_BUS_MAX_WAIT_SECONDS", "SERVICE_BUS_MAX_MESSAGE_COUNT",
        "APPLICATIONINSIGHTS_CONNECTION_STRING", "APPINSIGHTS_DEVELOPER_MODE",
        "APPINSIGHTS_CALLER_ID", "APPINSIGHTS_CALLER_ENVIRONMENT",
        "APPINSIGHTS_API_APP_ID", "APPINSIGHTS_WEBJOB_APP_ID", "APPINSIGHTS_QUERY_TIMESPAN",
        "KEY_VAULT_URL", "KEY_VAULT_NAME", "KEY_VAULT_TENANT_ID",
        "KEY_VAULT_CLIENT_ID", "KEY_VAULT_CLIENT_SECRET",
        "DOCKER_CONTAINER_GROUP_NAME", "DOCKER_IMAGE", "DOCKER_LOCATION",
        "DOCKER_REGISTRY_SERVER", "DOCKER_REGISTRY_USERNAME", "DOCKER_REGISTRY_PASSWORD",
        "DOCKER_RESOURCE_GROUP_NAME", "DOCKER_SUBSCRIPTION_ID", "DOCKER_TENANT_ID",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch
