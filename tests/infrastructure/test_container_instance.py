"""
ContainerInstanceRepository tests with a mocked management client.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from azure.mgmt.containerinstance.models import ContainerGroupRestartPolicy, OperatingSystemTypes

from config import DockerConfig
from exceptions import ConfigurationError, ValidationError
from infrastructure.container_instance import (
    ContainerInstanceRepository,
    ContainerResourceSize,
    resources_from_args,
)
from tests.factories.azure_errors import http_error


@pytest.fixture
def docker_config():
    return DockerConfig(
        container_group_name="nightly",
        image="/jobs/runner:1.4",
        location="westeurope",
        registry_server="registry.azurecr.io",
        registry_username="puller",
        registry_password="pa55",
        resource_group_name="rg-jobs",
        subscription_id="sub-1",
        tenant_id="tenant-1",
    )


@pytest.fixture
def aci_client():
    return MagicMock(name="ContainerInstanceManagementClient")


@pytest.fixture
def launcher(docker_config, aci_client):
    return ContainerInstanceRepository(config=docker_config, client=aci_client)


def group(name, state=None, events=None, containers=("runner",)):
    view = SimpleNamespace(state=state, events=events or []) if state is not None or events else None
    return SimpleNamespace(
        name=name,
        instance_view=view,
        containers=[SimpleNamespace(name=c) for c in containers],
    )


def event(name, first_timestamp=None):
    return SimpleNamespace(name=name, first_timestamp=first_timestamp)


def epoch_ms(moment):
    return int(moment.timestamp() * 1000)


def list_groups(aci_client, *groups):
    by_name = {g.name: g for g in groups}
    aci_client.container_groups.list_by_resource_group.return_value = [SimpleNamespace(name=g.name) for g in groups]
    aci_client.container_groups.get.side_effect = lambda rg, name: by_name[name]


class TestResourceSizes:

    def test_memory_and_cpu(self):
        assert ContainerResourceSize.GB8_CPU4.memory_in_gb == 8.0
        assert ContainerResourceSize.GB8_CPU4.cpu == 4.0

    def test_parse_is_case_insensitive(self):
        assert ContainerResourceSize.parse("16gb-2VCPU") is ContainerResourceSize.GB16_CPU2
        assert ContainerResourceSize.parse("32GB-8vCPU") is None

    def test_size_argument(self):
        assert resources_from_args(["--day", "1", "--ContainerInstanceService", "4GB-3vCPU"]) == (4.0, 3.0)

    @pytest.mark.parametrize("args", [None, [], ["--containerinstanceservice"], ["--containerinstanceservice", "huge"]])
    def test_defaults(self, args):
        assert resources_from_args(args) == (2.0, 2.0)


class TestConstruction:

    def test_missing_settings_named(self, aci_client):
        with pytest.raises(ConfigurationError) as exc_info:
            ContainerInstanceRepository(config=DockerConfig(image="/x"), client=aci_client)
        assert "registry_password" in str(exc_info.value)


class TestCreateAndRun:

    def test_group_definition(self, launcher, aci_client):
        name = launcher.create_and_run_container_instance(
            "export", "Export.dll", ["--day", "2025-01-31", "--containerinstanceservice", "8GB-2vCPU"]
        )

        rg, group_name, definition = aci_client.container_groups.begin_create_or_update.call_args.args
        assert rg == "rg-jobs"
        assert group_name == name
        assert name.startswith("nightly-")
        assert name.rsplit("-", 1)[1].isdigit()

        assert definition.location == "westeurope"
        assert definition.os_type == OperatingSystemTypes.LINUX
        assert definition.restart_policy == ContainerGroupRestartPolicy.NEVER
        assert definition.image_registry_credentials[0].server == "registry.azurecr.io"

        (container,) = definition.containers
        assert container.name == "export"
        assert container.image == "registry.azurecr.io/jobs/runner:1.4"
        assert container.resources.requests.memory_in_gb == 8.0
        assert container.resources.requests.cpu == 2.0
        assert container.command == [
            "dotnet", "Export.dll", "--day", "2025-01-31", "--containerinstanceservice", "8GB-2vCPU",
        ]

    def test_waits_for_deployment(self, launcher, aci_client):
        launcher.create_and_run_container_instance("export", "Export.dll")
        aci_client.container_groups.begin_create_or_update.return_value.result.assert_called_once_with()

    def test_no_command_without_args(self, launcher, aci_client):
        launcher.create_and_run_container_instance("export", "Export.dll")
        definition = aci_client.container_groups.begin_create_or_update.call_args.args[2]
        assert definition.containers[0].command is None
        assert definition.containers[0].resources.requests.memory_in_gb == 2.0

    @pytest.mark.parametrize("assembly", ["", "   ", None])
    def test_assembly_required(self, launcher, aci_client, assembly):
        with pytest.raises(ValidationError):
            launcher.create_and_run_container_instance("export", assembly)
        aci_client.container_groups.begin_create_or_update.assert_not_called()

    def test_deployment_failure_raised(self, launcher, aci_client):
        aci_client.container_groups.begin_create_or_update.return_value.result.side_effect = http_error(409)
        with pytest.raises(Exception):
            launcher.create_and_run_container_instance("export", "Export.dll")

    def test_deployment_attempted_once(self, launcher, aci_client):
        aci_client.container_groups.begin_create_or_update.side_effect = http_error(503)
        with pytest.raises(Exception):
            launcher.create_and_run_container_instance("export", "Export.dll")
        assert aci_client.container_groups.begin_create_or_update.call_count == 1
        assert not hasattr(ContainerInstanceRepository, "configure_retry_policy")


class TestGroupStates:

    def test_only_own_groups_reported(self, launcher, aci_client):
        started = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)
        list_groups(
            aci_client,
            group("nightly-1", "Running", [event("Pulling", started), event("Pulled"), event("Pulling")]),
            group("Nightly-2", "Succeeded"),
            group("other-3", "Running"),
        )

        states = launcher.get_container_group_states()

        assert [s.name for s in states] == ["nightly-1", "Nightly-2"]
        first = states[0]
        assert first.state == "Running"
        assert first.created_time == started
        assert first.containers[0].name == "runner"
        assert first.containers[0].restart_count == 2

    def test_missing_instance_view_is_unknown(self, launcher, aci_client):
        created = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)
        list_groups(aci_client, group(f"nightly-{epoch_ms(created)}"))
        (info,) = launcher.get_container_group_states()
        assert info.state == "Unknown"
        assert info.created_time == created

    def test_listing_failure_raised(self, launcher, aci_client):
        aci_client.container_groups.list_by_resource_group.side_effect = http_error(500)
        with pytest.raises(Exception):
            launcher.get_container_group_states()


class TestCleanup:

    def test_terminal_and_stale_groups_deleted(self, launcher, aci_client):
        now = datetime.now(timezone.utc)
        list_groups(
            aci_client,
            group("nightly-a", "Succeeded"),
            group("nightly-b", "Failed"),
            group("nightly-c", "Running"),
            group(f"nightly-{epoch_ms(now - timedelta(hours=30))}"),
            group(f"nightly-{epoch_ms(now - timedelta(hours=1))}"),
            group("nightly-d", "Stopped"),
        )

        assert launcher.cleanup_completed_container_groups() == 4

        deleted = [c.args[1] for c in aci_client.container_groups.begin_delete.call_args_list]
        assert "nightly-a" in deleted
        assert "nightly-c" not in deleted
        assert f"nightly-{epoch_ms(now - timedelta(hours=1))}" not in deleted

    def test_failing_group_skipped(self, launcher, aci_client):
        list_groups(aci_client, group("nightly-a", "Succeeded"), group("nightly-b", "Terminated"))
        aci_client.container_groups.begin_delete.side_effect = [http_error(500), None]
        assert launcher.cleanup_completed_container_groups() == 1

    def test_unknown_without_timestamp_kept(self, launcher, aci_client):
        list_groups(aci_client, group("nightly-manual"))
        assert launcher.cleanup_completed_container_groups() == 0
