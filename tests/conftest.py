"""
Root conftest.py — sys.path, env vars, shared fixtures.

Sets up the test environment so all production code can be imported
without Azure credentials. Every SDK client is injected as a mock; no
test talks to a real service.
"""

import os
import sys

import pytest

# Add project root to sys.path so 'core', 'infrastructure', 'config', etc. are importable
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


@pytest.fixture(autouse=True, scope="session")
def set_minimal_env_vars():
    """
    Set minimal environment variables to prevent import crashes.

    Wrappers fall back to get_config() for anything not injected, so the
    defaults keep retries fast and leave every Azure endpoint unset.
    """
    defaults = {
        "ENVIRONMENT": "dev",
        "RETRY_POLICY_MAX_RETRIES": "2",
        "RETRY_POLICY_DELAY_MS": "0",
        "RETRY_POLICY_MAX_DELAY_MS": "0",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


@pytest.fixture(autouse=True)
def fresh_config():
    """Drop the config singleton around every test so env changes are picked up."""
    from config import reset_config
    reset_config()
    yield
    reset_config()


@pytest.fixture
def recorded_sleeps():
    """List collecting every backoff delay instead of sleeping."""
    return []


@pytest.fixture
def retry_policy(recorded_sleeps):
    """
    RetryPolicyService with max_retries=2, 100ms base, 1s cap, no real waiting.
    """
    from core.retry_policy import RetryConfig, RetryPolicyService

    async def _async_sleep(delay):
        recorded_sleeps.append(delay)

    return RetryPolicyService(
        RetryConfig(max_retries=2, base_delay=0.1, max_delay=1.0),
        sleep=recorded_sleeps.append,
        async_sleep=_async_sleep,
    )


@pytest.fixture
def no_retry_policy():
    """RetryPolicyService that makes exactly one attempt."""
    from core.retry_policy import RetryConfig, RetryPolicyService

    return RetryPolicyService(RetryConfig(max_retries=0, base_delay=0, max_delay=0))
