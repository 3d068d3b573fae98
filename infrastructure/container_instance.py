# ============================================================================
# CLAUDE CONTEXT - CONTAINER INSTANCE REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Azure Container Instances launcher
# PURPOSE: Start one-shot container groups, report their state, clean them up
# EXPORTS: ContainerInstanceRepository, ContainerResourceSize, ContainerGroupInfo, ContainerInfo
# DEPENDENCIES: azure-mgmt-containerinstance, azure-identity, config
# SOURCE: Resource group from DOCKER_* environment variables
# PATTERNS: Repository pattern, Singleton
# ENTRY_POINTS: RepositoryFactory.create_container_instance_repository()
# ============================================================================

"""
Container Instance Repository

Each run creates a new container group named "<base>-<epoch ms>" from the
private registry image, with restart policy Never so the group stops once
the process exits. Groups are never reused; call
cleanup_completed_container_groups() periodically to delete finished ones.

Resources come from the run arguments: "--containerinstanceservice 8GB-4vCPU"
selects 8 GB / 4 vCPU. Without it (or with an unknown size) a group gets
2 GB / 2 vCPU.

Usage:
    launcher = RepositoryFactory.create_container_instance_repository()
    group = launcher.create_and_run_container_instance(
        "nightly-export", "Export.dll", ["--day", "2025-01-31", "--containerinstanceservice", "4GB-2vCPU"]
    )
"""

import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from azure.identity import DefaultAzureCredential
from azure.mgmt.containerinstance import ContainerInstanceManagementClient
from azure.mgmt.containerinstance.models import (
    Container,
    ContainerGroup,
    ContainerGroupRestartPolicy,
    ImageRegistryCredential,
    OperatingSystemTypes,
    ResourceRequests,
    ResourceRequirements,
)

from config import get_config, DockerConfig
from config.defaults import DockerDefaults
from exceptions import ConfigurationError, ValidationError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "ContainerInstanceRepository")

TERMINAL_STATES = frozenset({"succeeded", "failed", "stopped", "terminated"})
UNKNOWN_STATE = "Unknown"
PULLING_EVENT = "Pulling"

_SIZE_PATTERN = re.compile(r"^(\d+)GB-(\d+)vCPU$")


class ContainerResourceSize(Enum):
    """Memory / CPU combinations selectable with --containerinstanceservice."""
    GB2_CPU2 = "2GB-2vCPU"
    GB2_CPU3 = "2GB-3vCPU"
    GB2_CPU4 = "2GB-4vCPU"
    GB4_CPU2 = "4GB-2vCPU"
    GB4_CPU3 = "4GB-3vCPU"
    GB4_CPU4 = "4GB-4vCPU"
    GB8_CPU2 = "8GB-2vCPU"
    GB8_CPU3 = "8GB-3vCPU"
    GB8_CPU4 = "8GB-4vCPU"
    GB16_CPU2 = "16GB-2vCPU"
    GB16_CPU3 = "16GB-3vCPU"
    GB16_CPU4 = "16GB-4vCPU"

    @property
    def memory_in_gb(self) -> float:
        return float(_SIZE_PATTERN.match(self.value).group(1))

    @property
    def cpu(self) -> float:
        return float(_SIZE_PATTERN.match(self.value).group(2))

    @classmethod
    def parse(cls, value: str) -> Optional['ContainerResourceSize']:
        """Case-insensitive lookup by value; None when unknown."""
        for size in cls:
            if size.value.lower() == value.lower():
                return size
        return None


def resources_from_args(args: Optional[Sequence[str]]) -> Tuple[float, float]:
    """
    Memory (GB) and CPU for a run.

    Looks for the size argument followed by a known size; anything else
    yields the defaults.
    """
    args = list(args or [])
    for index, arg in enumerate(args):
        if arg.lower() == DockerDefaults.SIZE_ARGUMENT and index + 1 < len(args):
            size = ContainerResourceSize.parse(args[index + 1])
            if size is not None:
                return size.memory_in_gb, size.cpu
            break
    return DockerDefaults.DEFAULT_MEMORY_GB, DockerDefaults.DEFAULT_CPU


@dataclass
class ContainerInfo:
    name: str
    state: str
    restart_count: int = 0


@dataclass
class ContainerGroupInfo:
    name: str
    state: str
    created_time: Optional[datetime] = None
    containers: List[ContainerInfo] = field(default_factory=list)


class ContainerInstanceRepository:
    """
    Azure Container Instances repository.

    All DOCKER_* settings are required; construction fails with
    ConfigurationError naming the missing ones.
    """

    _instance: Optional['ContainerInstanceRepository'] = None
    _lock = threading.Lock()

    def __init__(
        self,
        config: Optional[DockerConfig] = None,
        client: Optional[ContainerInstanceManagementClient] = None,
    ):
        self.config = config or get_config().docker

        missing = self.config.missing_settings()
        if missing:
            raise ConfigurationError(
                f"ContainerInstanceRepository is missing settings: {', '.join(missing)}"
            )

        if client is None:
            try:
                logger.info("🔐 Creating DefaultAzureCredential for Container Instances")
                credential = DefaultAzureCredential(additionally_allowed_tenants=[self.config.tenant_id])
                client = ContainerInstanceManagementClient(
                    credential=credential,
                    subscription_id=self.config.subscription_id,
                )
            except Exception as e:
                logger.error(f"❌ Failed to initialize ContainerInstanceRepository: {e}")
                raise

        self.client = client
        self.resource_group = self.config.resource_group_name
        self.base_name = self.config.container_group_name
        logger.info(f"✅ ContainerInstanceRepository initialized for resource group: {self.resource_group}")

    @classmethod
    def instance(cls) -> 'ContainerInstanceRepository':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # ========================================================================
    # CREATE
    # ========================================================================

    def create_and_run_container_instance(
        self,
        container_name: str,
        assembly_name: str,
        args: Optional[Sequence[str]] = None,
    ) -> str:
        """
        Create a container group running one container and wait for the
        deployment to complete.

        Args:
            container_name: Name of the container inside the group
            assembly_name: Assembly passed to `dotnet`
            args: Extra command-line arguments; may carry the size argument

        Returns:
            Name of the created container group

        Raises:
            ValidationError: assembly_name is empty
        """
        if not assembly_name or not assembly_name.strip():
            raise ValidationError("Assembly name cannot be null or empty.")

        memory_in_gb, cpu = resources_from_args(args)
        group_name = f"{self.base_name}-{int(datetime.now(timezone.utc).timestamp() * 1000)}"

        container = Container(
            name=container_name,
            image=self.config.image_reference,
            resources=ResourceRequirements(
                requests=ResourceRequests(memory_in_gb=memory_in_gb, cpu=cpu)
            ),
        )
        # The image's own entrypoint runs unless arguments are given
        if args:
            container.command = ["dotnet", assembly_name, *args]

        group = ContainerGroup(
            location=self.config.location,
            containers=[container],
            os_type=OperatingSystemTypes.LINUX,
            restart_policy=ContainerGroupRestartPolicy.NEVER,
            image_registry_credentials=[
                ImageRegistryCredential(
                    server=self.config.registry_server,
                    username=self.config.registry_username,
                    password=self.config.registry_password,
                )
            ],
        )

        logger.info(f"🚀 Creating container group {group_name} ({memory_in_gb} GB / {cpu} vCPU)")
        try:
            self.client.container_groups.begin_create_or_update(
                self.resource_group, group_name, group
            ).result()
        except Exception as e:
            logger.error(f"❌ Failed to create container group '{group_name}': {e}")
            raise
        logger.info(f"✅ Container group {group_name} created")
        return group_name

    # ========================================================================
    # STATE
    # ========================================================================

    def _own_group_names(self) -> List[str]:
        prefix = self.base_name.lower()
        return [
            group.name
            for group in self.client.container_groups.list_by_resource_group(self.resource_group)
            if group.name and group.name.lower().startswith(prefix)
        ]

    def get_container_group_states(self) -> List[ContainerGroupInfo]:
        """
        Current state of every container group whose name starts with the
        configured base name.

        The listing does not carry instance views, so each group is fetched
        again individually.
        """
        try:
            infos = []
            for name in self._own_group_names():
                group = self.client.container_groups.get(self.resource_group, name)
                state = _group_state(group)
                restarts = _count_pulling_events(group)
                infos.append(ContainerGroupInfo(
                    name=group.name,
                    state=state,
                    created_time=_created_time(group),
                    containers=[
                        ContainerInfo(name=c.name, state=state, restart_count=restarts)
                        for c in (group.containers or [])
                    ],
                ))
            return infos
        except Exception as e:
            logger.error(f"❌ Failed to retrieve container group states: {e}")
            raise

    # ========================================================================
    # CLEANUP
    # ========================================================================

    def cleanup_completed_container_groups(self) -> int:
        """
        Delete finished container groups.

        Groups in a terminal state are always deleted; groups in the Unknown
        state only once they are older than 24 hours. A group that cannot be
        read or deleted is logged and skipped.

        Returns:
            Number of groups whose deletion was started
        """
        cutoff = datetime.now(timezone.utc) - timedelta(hours=DockerDefaults.STALE_GROUP_HOURS)
        deleted = 0

        for name in self._own_group_names():
            try:
                group = self.client.container_groups.get(self.resource_group, name)
                if not _should_delete(group, cutoff):
                    continue
                self.client.container_groups.begin_delete(self.resource_group, name)
                deleted += 1
                logger.debug(f"🗑️ Deleting container group {name}")
            except Exception as e:
                logger.warning(f"⚠️ Skipping container group {name} during cleanup: {e}")

        logger.info(f"🧹 Cleanup started deletion of {deleted} container groups")
        return deleted


# ============================================================================
# HELPERS
# ============================================================================

def _group_state(group) -> str:
    view = getattr(group, "instance_view", None)
    return (view.state if view is not None and view.state else UNKNOWN_STATE)


def _count_pulling_events(group) -> int:
    view = getattr(group, "instance_view", None)
    if view is None or not view.events:
        return 0
    return sum(1 for event in view.events if event.name == PULLING_EVENT)


def _created_time(group) -> Optional[datetime]:
    """First event timestamp, else the epoch-ms suffix of the group name."""
    view = getattr(group, "instance_view", None)
    if view is not None and view.events and view.events[0].first_timestamp:
        return view.events[0].first_timestamp

    suffix = group.name.rsplit("-", 1)[-1]
    if suffix.isdigit():
        try:
            return datetime.fromtimestamp(int(suffix) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def _should_delete(group, cutoff: datetime) -> bool:
    state = _group_state(group)
    if state.lower() in TERMINAL_STATES:
        return True
    if state.lower() == UNKNOWN_STATE.lower():
        created = _created_time(group)
        if created is not None:
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            return created < cutoff
    return False


def get_container_instance_repository() -> ContainerInstanceRepository:
    """Factory function for dependency injection."""
    return ContainerInstanceRepository.instance()


__all__ = [
    'ContainerInstanceRepository',
    'ContainerResourceSize',
    'ContainerGroupInfo',
    'ContainerInfo',
    'resources_from_args',
    'get_container_instance_repository',
]
