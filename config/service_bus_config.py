"""
Azure Service Bus Configuration.

Provides configuration for:
    - Service Bus connection settings (connection string or namespace)
    - Receive wait time and batch size

Exports:
    ServiceBusConfig: Pydantic Service Bus configuration model
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import ServiceBusDefaults


class ServiceBusConfig(BaseModel):
    """
    Azure Service Bus configuration.

    Either connection_string or namespace (managed identity) must be set
    before ServiceBusRepository is constructed.
    """

    connection_string: Optional[str] = Field(
        default=None,
        repr=False,
        description="Service Bus connection string"
    )

    namespace: Optional[str] = Field(
        default=None,
        description="Fully qualified namespace for DefaultAzureCredential auth"
    )

    max_wait_seconds: int = Field(
        default=ServiceBusDefaults.MAX_WAIT_SECONDS,
        ge=1,
        le=300,
        description="How long a receive waits for the first message"
    )

    max_message_count: int = Field(
        default=ServiceBusDefaults.MAX_MESSAGE_COUNT,
        ge=1,
        le=1000,
        description="Default number of messages per receive or peek"
    )

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        return cls(
            connection_string=os.environ.get("SERVICE_BUS_CONNECTION_STRING"),
            namespace=os.environ.get("SERVICE_BUS_NAMESPACE"),
            max_wait_seconds=int(os.environ.get("SERVICE_BUS_MAX_WAIT_SECONDS", str(ServiceBusDefaults.MAX_WAIT_SECONDS))),
            max_message_count=int(os.environ.get("SERVICE_BUS_MAX_MESSAGE_COUNT", str(ServiceBusDefaults.MAX_MESSAGE_COUNT))),
        )

    def debug_dict(self) -> dict:
        return {
            "connection_string": "***MASKED***" if self.connection_string else None,
            "namespace": self.namespace,
            "max_wait_seconds": self.max_wait_seconds,
            "max_message_count": self.max_message_count,
        }
