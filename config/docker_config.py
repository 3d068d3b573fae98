# ============================================================================
# CONTAINER INSTANCE CONFIGURATION
# ============================================================================
# STATUS: Configuration - Azure Container Instances launcher
# PURPOSE: Registry, image and resource group used to start one-shot containers
# ============================================================================
"""
Container Instance Configuration.

Settings for ContainerInstanceRepository, which starts one-shot container
groups from a private registry image and cleans them up afterwards.

Environment Variables:
    DOCKER_CONTAINER_GROUP_NAME  = batch-runner     (prefix of every group name)
    DOCKER_IMAGE                 = /batch/runner:latest
    DOCKER_LOCATION              = westeurope
    DOCKER_REGISTRY_SERVER       = myregistry.azurecr.io
    DOCKER_REGISTRY_USERNAME     = myregistry
    DOCKER_REGISTRY_PASSWORD     = ***
    DOCKER_RESOURCE_GROUP_NAME   = batch-rg
    DOCKER_SUBSCRIPTION_ID       = 00000000-...
    DOCKER_TENANT_ID             = 00000000-...

All of them are required by the launcher.

Exports:
    DockerConfig: Pydantic configuration model
"""

import os
from typing import List, Optional
from pydantic import BaseModel, Field


class DockerConfig(BaseModel):
    """
    Azure Container Instances configuration.

    The full image reference is registry_server + image, so image normally
    starts with "/".
    """

    container_group_name: Optional[str] = Field(default=None, description="Base name / prefix for container groups")
    image: Optional[str] = Field(default=None, description="Image path appended to registry_server")
    location: Optional[str] = Field(default=None, description="Azure region for new groups")
    registry_server: Optional[str] = Field(default=None, description="Private registry login server")
    registry_username: Optional[str] = Field(default=None, description="Registry user")
    registry_password: Optional[str] = Field(default=None, repr=False, description="Registry password")
    resource_group_name: Optional[str] = Field(default=None, description="Resource group holding the groups")
    subscription_id: Optional[str] = Field(default=None, description="Subscription of the resource group")
    tenant_id: Optional[str] = Field(default=None, description="Tenant used for DefaultAzureCredential")

    @property
    def image_reference(self) -> str:
        return f"{self.registry_server}{self.image}"

    def missing_settings(self) -> List[str]:
        """Names of required settings that are not configured."""
        return [name for name, value in self.model_dump().items() if not value]

    @classmethod
    def from_environment(cls) -> "DockerConfig":
        """Load from environment variables."""
        return cls(
            container_group_name=os.environ.get("DOCKER_CONTAINER_GROUP_NAME"),
            image=os.environ.get("DOCKER_IMAGE"),
            location=os.environ.get("DOCKER_LOCATION"),
            registry_server=os.environ.get("DOCKER_REGISTRY_SERVER"),
            registry_username=os.environ.get("DOCKER_REGISTRY_USERNAME"),
            registry_password=os.environ.get("DOCKER_REGISTRY_PASSWORD"),
            resource_group_name=os.environ.get("DOCKER_RESOURCE_GROUP_NAME"),
            subscription_id=os.environ.get("DOCKER_SUBSCRIPTION_ID"),
            tenant_id=os.environ.get("DOCKER_TENANT_ID"),
        )

    def debug_dict(self) -> dict:
        """Return safe debug representation."""
        return {
            "container_group_name": self.container_group_name,
            "image": self.image,
            "location": self.location,
            "registry_server": self.registry_server,
            "registry_username": self.registry_username,
            "registry_password": "***MASKED***" if self.registry_password else None,
            "resource_group_name": self.resource_group_name,
            "subscription_id": self.subscription_id,
        }
