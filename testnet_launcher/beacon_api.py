"""
Beacon node REST API client, health polling and identity discovery.
"""

from __future__ import annotations

import aiohttp
import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Dict, Mapping

from .exceptions import HealthCheckTimeout, IdentityFetchError
from .runtime import ServiceHandle

LOG = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 100
DEFAULT_RETRY_INTERVAL = 5
REQUEST_TIMEOUT = 10

HEALTH_PATH = '/eth/v1/node/health'
IDENTITY_PATH = '/eth/v1/node/identity'
# 200 when ready, 206 while syncing. A syncing node is up and has an identity.
HEALTHY_STATUSES = frozenset({200, 206})


@dataclass(frozen=True)
class NodeIdentity:
    address_record: str
    "ENR of the node"

    peer_id: str
    private_ip: str
    ports: Mapping[str, int]
    "port numbers keyed by port ID"


class BeaconRestClient(object):
    """
    Client for the standard beacon node HTTP API of one node.
    """
    def __init__(self, ip_address: str, port: int, timeout: float = REQUEST_TIMEOUT):
        self.ip_address = ip_address
        self.port = port
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def base_url(self) -> str:
        return f"http://{self.ip_address}:{self.port}"

    async def is_healthy(self) -> bool:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(self.base_url + HEALTH_PATH) as response:
                    return response.status in HEALTHY_STATUSES

        except aiohttp.ClientConnectionError:
            LOG.debug(f"Connection error checking health of {self.base_url}")
            return False

        except asyncio.TimeoutError:
            LOG.debug(f"Timeout error checking health of {self.base_url}")
            return False

    async def get_node_identity(self) -> Dict[str, Any]:
        """
        Fetch the node's identity.

        :return: the "data" object of the identity response
        :raise IdentityFetchError: if the request fails or the response is malformed
        """
        url = self.base_url + IDENTITY_PATH
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        raise IdentityFetchError(
                            f"request to {url} returned status {response.status}"
                        )
                    payload = await response.json(content_type=None)

        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as err:
            raise IdentityFetchError(f"failed to fetch node identity from {url}: {err}") from err

        if not isinstance(payload, dict):
            raise IdentityFetchError(f"malformed node identity response from {url}")
        data = payload.get('data')
        if not isinstance(data, dict) or not isinstance(data.get('enr'), str):
            raise IdentityFetchError(f"node identity response from {url} has no ENR")
        return data


async def wait_for_beacon_availability(
        client: BeaconRestClient,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
) -> int:
    """
    Poll a beacon node until it reports healthy.

    There is no sleep before the first poll or after the last one.

    :param client: client for the node
    :param max_retries: maximum number of polls
    :param retry_interval: seconds to sleep between polls
    :return: the number of polls made
    :raise HealthCheckTimeout: if the node is not healthy after max_retries polls
    """
    for attempt in range(1, max_retries + 1):
        if await client.is_healthy():
            LOG.debug(f"Beacon node {client.base_url} healthy after {attempt} polls")
            return attempt
        LOG.debug(f"Beacon node {client.base_url} not yet healthy ({attempt}/{max_retries})")
        if attempt < max_retries:
            await asyncio.sleep(retry_interval)

    raise HealthCheckTimeout(
        f"beacon node {client.base_url} did not become healthy after {max_retries} polls "
        f"{retry_interval} seconds apart"
    )


async def fetch_node_identity(client: BeaconRestClient, handle: ServiceHandle) -> NodeIdentity:
    """
    Discover the identity of a healthy beacon node. Makes a single request.

    :raise IdentityFetchError: if the identity cannot be retrieved
    """
    data = await client.get_node_identity()
    return NodeIdentity(
        address_record=data['enr'],
        peer_id=str(data.get('peer_id', '')),
        private_ip=handle.private_ip,
        ports={port_id: port.number for port_id, port in handle.ports.items()},
    )
