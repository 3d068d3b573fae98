"""
Cosmos DB Configuration.

Callers address containers by a short logical reference ("orders",
"audit", ...) instead of the physical container id. Each reference maps
to the container id, the name of the property carrying the partition key
and an optional default time to live.

Environment Variables:
    COSMOS_DB_CONNECTION_STRING = AccountEndpoint=...;AccountKey=...;
    COSMOS_DB_DATABASE_NAME     = mydb
    COSMOS_DB_CONTAINERS        = [{"reference": "orders", "id": "orders-v2",
                                    "default_partition_key": "customerId",
                                    "time_to_live": 3600}]

Exports:
    CosmosContainerConfig: Per-container settings
    CosmosDbConfig: Pydantic Cosmos configuration model
"""

import json
import os
from typing import List, Optional
from pydantic import BaseModel, Field, ValidationError

from exceptions import ConfigurationError
from .defaults import CosmosDefaults


class CosmosContainerConfig(BaseModel):
    """Logical container reference and its physical settings."""

    reference: str = Field(
        ...,
        min_length=1,
        description="Logical name used by callers"
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Physical Cosmos container id"
    )

    default_partition_key: str = Field(
        default=CosmosDefaults.DEFAULT_PARTITION_KEY,
        description="Document property holding the partition key value"
    )

    time_to_live: Optional[int] = Field(
        default=None,
        description="Seconds written to the ttl property on upsert when the caller passes none"
    )


class CosmosDbConfig(BaseModel):
    """
    Cosmos DB configuration.

    Holds the account connection, database name and the container map.
    """

    connection_string: Optional[str] = Field(
        default=None,
        repr=False,
        description="Cosmos DB account connection string"
    )

    database_name: Optional[str] = Field(
        default=None,
        description="Cosmos DB database name"
    )

    containers: List[CosmosContainerConfig] = Field(
        default_factory=list,
        description="Logical container references (COSMOS_DB_CONTAINERS as a JSON list)"
    )

    def get_container(self, reference: str) -> Optional[CosmosContainerConfig]:
        """Look up a container by its logical reference."""
        for container in self.containers:
            if container.reference == reference:
                return container
        return None

    @staticmethod
    def parse_containers(raw: Optional[str]) -> List[CosmosContainerConfig]:
        """Parse the COSMOS_DB_CONTAINERS JSON list."""
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"COSMOS_DB_CONTAINERS is not valid JSON: {e}") from e
        if not isinstance(items, list):
            raise ConfigurationError("COSMOS_DB_CONTAINERS must be a JSON list of container objects")
        try:
            return [CosmosContainerConfig.model_validate(item) for item in items]
        except ValidationError as e:
            raise ConfigurationError(f"COSMOS_DB_CONTAINERS has an invalid container entry: {e}") from e

    @classmethod
    def from_environment(cls) -> "CosmosDbConfig":
        """Load from environment variables."""
        return cls(
            connection_string=os.environ.get("COSMOS_DB_CONNECTION_STRING"),
            database_name=os.environ.get("COSMOS_DB_DATABASE_NAME"),
            containers=cls.parse_containers(os.environ.get("COSMOS_DB_CONTAINERS")),
        )

    def debug_dict(self) -> dict:
        """Return safe debug representation."""
        return {
            "connection_string": "***MASKED***" if self.connection_string else None,
            "database_name": self.database_name,
            "containers": [c.reference for c in self.containers],
        }
