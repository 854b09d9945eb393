import unittest
from typing import List

from aiohttp import web
from aiohttp.test_utils import TestServer

from .beacon_api import BeaconRestClient, HEALTH_PATH, IDENTITY_PATH, fetch_node_identity, \
    wait_for_beacon_availability
from .exceptions import HealthCheckTimeout, IdentityFetchError
from .launch_spec import PortSpec
from .runtime import ServiceHandle
from .staging import SharedPath

TEST_ENR = 'enr:-MS4QHXYrd6ZJ8PGaBn9ZmnvGNX4l8fkjNc1W9E2kA2xjb6wYg'


class ScriptedHealthClient(BeaconRestClient):
    """
    Reports the given health results in order, then healthy.
    """
    def __init__(self, results: List[bool]):
        super().__init__('10.0.0.5', 3500)
        self.results = list(results)
        self.polls = 0

    async def is_healthy(self) -> bool:
        self.polls += 1
        if self.results:
            return self.results.pop(0)
        return True


class WaitForBeaconAvailabilityTest(unittest.IsolatedAsyncioTestCase):
    async def test_healthy_after_failures(self):
        for failures in (0, 1, 4):
            with self.subTest(failures=failures):
                client = ScriptedHealthClient([False] * failures)
                polls = await wait_for_beacon_availability(client, max_retries=10, retry_interval=0)
                self.assertEqual(polls, failures + 1)
                self.assertEqual(client.polls, failures + 1)

    async def test_healthy_on_last_poll(self):
        client = ScriptedHealthClient([False] * 2)
        self.assertEqual(await wait_for_beacon_availability(client, max_retries=3, retry_interval=0), 3)

    async def test_timeout(self):
        client = ScriptedHealthClient([False] * 10)
        with self.assertRaises(HealthCheckTimeout):
            await wait_for_beacon_availability(client, max_retries=3, retry_interval=0)
        self.assertEqual(client.polls, 3)


class BeaconRestClientTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.health_status = 200
        self.identity_status = 200
        self.identity_body = {
            'data': {
                'peer_id': '16Uiu2HAmQ',
                'enr': TEST_ENR,
                'p2p_addresses': [],
                'discovery_addresses': [],
            },
        }

        app = web.Application()
        app.router.add_get(HEALTH_PATH, self._handle_health)
        app.router.add_get(IDENTITY_PATH, self._handle_identity)
        self.server = TestServer(app, host='127.0.0.1')
        await self.server.start_server()
        self.client = BeaconRestClient(self.server.host, self.server.port)

    async def asyncTearDown(self) -> None:
        await self.server.close()

    async def _handle_health(self, _request: web.Request) -> web.Response:
        return web.Response(status=self.health_status)

    async def _handle_identity(self, _request: web.Request) -> web.Response:
        return web.json_response(self.identity_body, status=self.identity_status)

    async def test_healthy(self):
        self.assertTrue(await self.client.is_healthy())

    async def test_syncing_is_healthy(self):
        self.health_status = 206
        self.assertTrue(await self.client.is_healthy())

    async def test_unhealthy(self):
        self.health_status = 503
        self.assertFalse(await self.client.is_healthy())

    async def test_connection_refused_is_unhealthy(self):
        port = self.server.port
        await self.server.close()
        self.assertFalse(await BeaconRestClient('127.0.0.1', port).is_healthy())

    async def test_fetch_node_identity(self):
        handle = ServiceHandle(
            service_id='cl-client-0-beacon',
            private_ip='172.30.0.3',
            ports={'http': PortSpec(3500), 'rpc': PortSpec(4000)},
            shared_dir=SharedPath(local_path='/tmp/enclave/cl-client-0-beacon', service_path='/shared'),
        )
        identity = await fetch_node_identity(self.client, handle)
        self.assertEqual(identity.address_record, TEST_ENR)
        self.assertEqual(identity.peer_id, '16Uiu2HAmQ')
        self.assertEqual(identity.private_ip, '172.30.0.3')
        self.assertEqual(identity.ports, {'http': 3500, 'rpc': 4000})

    async def test_identity_error_status(self):
        self.identity_status = 500
        with self.assertRaises(IdentityFetchError):
            await self.client.get_node_identity()

    async def test_identity_without_enr(self):
        self.identity_body = {'data': {'peer_id': '16Uiu2HAmQ'}}
        with self.assertRaises(IdentityFetchError):
            await self.client.get_node_identity()


if __name__ == '__main__':
    unittest.main()
