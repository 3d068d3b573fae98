"""
Infrastructure test fixtures — mock SDK clients.
"""

from unittest.mock import MagicMock

import pytest


@pytest.fixture
def cosmos_container():
    """Mock azure.cosmos ContainerProxy."""
    return MagicMock(name="ContainerProxy")


@pytest.fixture
def table_client():
    """Mock azure.data.tables TableClient."""
    client = MagicMock(name="TableClient")
    client.table_name = "jobs"
    return client
