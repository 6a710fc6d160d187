"""
Container handle resolution and housekeeping for dev containers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List

from docker import errors

from ..errors import ContainerNotFound, OrchestratorError

logger = logging.getLogger(__name__)


class ContainerResolver:
    """
    Map an opaque container id (the name minted at creation) to a live
    docker-SDK container handle.

    The docker client is injected so tests can pass a fake.
    """

    def __init__(self, client):
        self.client = client

    def get_sync(self, container_id: str):
        try:
            return self.client.containers.get(container_id)
        except errors.NotFound:
            raise ContainerNotFound(f"No such container: {container_id}")
        except errors.APIError as e:
            raise OrchestratorError(f"Could not resolve container {container_id}: {e}")

    async def get(self, container_id: str):
        return await asyncio.to_thread(self.get_sync, container_id)


def cleanup_dev_containers(client, container_prefix: str = "dev-") -> List[str]:
    """
    Stop and remove leftover dev containers from previous runs.

    Args:
        client: docker client
        container_prefix: Prefix to match container names (default: "dev-")

    Returns:
        List of container names that were removed
    """
    removed = []
    containers = client.containers.list(all=True, filters={"name": container_prefix})
    if containers:
        logger.info("Cleaning up %d existing dev containers", len(containers))

    for container in containers:
        # docker's name filter is a substring match
        if not container.name.startswith(container_prefix):
            continue
        try:
            container.stop()
            container.remove()
            removed.append(container.name)
            logger.info("Removed container: %s", container.name)
        except errors.APIError as e:
            logger.warning("Could not remove %s: %s", container.name, e)

    return removed
