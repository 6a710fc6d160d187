# tests/test_container_utils.py
from unittest.mock import Mock

import pytest
from docker import errors

from archie_sandbox.errors import ContainerNotFound, OrchestratorError
from archie_sandbox.sandbox.container_utils import ContainerResolver, cleanup_dev_containers


def _container(name):
    c = Mock()
    c.name = name
    return c


def test_cleanup_only_touches_prefixed_containers():
    dev = _container("dev-1700000000000")
    other = _container("my-dev-db")  # docker's name filter is a substring match
    client = Mock()
    client.containers.list.return_value = [dev, other]

    removed = cleanup_dev_containers(client, "dev-")

    assert removed == ["dev-1700000000000"]
    dev.stop.assert_called_once()
    dev.remove.assert_called_once()
    other.stop.assert_not_called()
    client.containers.list.assert_called_once_with(all=True, filters={"name": "dev-"})


def test_cleanup_continues_past_failures():
    stuck = _container("dev-1")
    stuck.stop.side_effect = errors.APIError("cannot stop")
    fine = _container("dev-2")
    client = Mock()
    client.containers.list.return_value = [stuck, fine]

    assert cleanup_dev_containers(client) == ["dev-2"]


def test_resolver_maps_not_found():
    client = Mock()
    client.containers.get.side_effect = errors.NotFound("No such container")
    with pytest.raises(ContainerNotFound):
        ContainerResolver(client).get_sync("dev-1")


def test_resolver_maps_api_errors():
    client = Mock()
    client.containers.get.side_effect = errors.APIError("daemon unreachable")
    with pytest.raises(OrchestratorError):
        ContainerResolver(client).get_sync("dev-1")


@pytest.mark.asyncio
async def test_resolver_async():
    client = Mock()
    client.containers.get.return_value = "handle"
    assert await ContainerResolver(client).get("dev-1") == "handle"
