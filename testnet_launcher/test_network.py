import os.path
import tempfile
import unittest

from .config import HealthCheckConfig, NetworkConfig, ParticipantConfig
from .exceptions import ConfigurationError
from .genesis import write_jwt_secret
from .launch_spec import ServiceRole
from .network import GENESIS_GENERATOR_SERVICE_ID, launch_participant_network
from .test_genesis import FakeGenesisRuntime
from .test_participant import FakeRestClient, SpyRuntime, make_keystore

TEST_MNEMONIC = 'giant issue aisle success illegal bike spike question tent bar rely arctic ' \
    'volcano long crawl hungry vocal artwork sniff fantasy very lucky have athlete'


class FakeNetworkRuntime(SpyRuntime):
    execute_command = FakeGenesisRuntime.execute_command

    def __init__(self, base_dir: str):
        super().__init__(base_dir, ips=[f"10.0.0.{i}" for i in range(2, 20)])
        self.exit_code = 0
        self.write_state = True
        self.commands = []


def rest_client_factory(ip_address: str, port: int) -> FakeRestClient:
    return FakeRestClient(ip_address, port, identity={'enr': f"enr:{ip_address}", 'peer_id': ''})


class LaunchParticipantNetworkTest(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.runtime = FakeNetworkRuntime(os.path.join(self.tmpdir.name, 'enclave'))
        self.jwt_secret_path = os.path.join(self.tmpdir.name, 'jwtsecret')
        write_jwt_secret(self.jwt_secret_path)

        keystore = make_keystore(self.tmpdir.name)
        prysm = ParticipantConfig(
            cl_client='prysm',
            cl_images='prysm-beacon:latest,prysm-validator:latest',
            el_rpc_url='http://10.0.0.100:8551',
            keystore=keystore,
        )
        lighthouse = ParticipantConfig(
            cl_client='lighthouse',
            cl_images='sigp/lighthouse:latest',
            el_rpc_url='http://10.0.0.101:8551',
            keystore=keystore,
        )
        self.config = NetworkConfig(
            network_id='3151908',
            participants=[prysm, lighthouse, prysm],
            mnemonic=TEST_MNEMONIC,
            health_check=HealthCheckConfig(max_retries=3, retry_interval=0),
        )

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    async def test_launch(self):
        network = await launch_participant_network(
            self.runtime, self.config, self.jwt_secret_path,
            rest_client_factory=rest_client_factory,
        )

        self.assertEqual(len(self.runtime.commands), 1)
        self.assertEqual(
            [service_id for service_id, _ in self.runtime.launched],
            [
                GENESIS_GENERATOR_SERVICE_ID,
                'cl-client-0-beacon', 'cl-client-0-validator',
                'cl-client-1-beacon', 'cl-client-1-validator',
                'cl-client-2-beacon', 'cl-client-2-validator',
            ],
        )
        self.assertEqual(self.runtime.launched[0][1].role, ServiceRole.GENESIS_GENERATOR)
        self.assertEqual(
            [context.enr for context in network.contexts],
            ['enr:10.0.0.3', 'enr:10.0.0.5', 'enr:10.0.0.7'],
        )

        specs = dict(self.runtime.launched)
        self.assertFalse(any('bootstrap-node' in arg for arg in specs['cl-client-0-beacon'].cmd))
        # The first beacon node reads its chain config from the generated genesis bundle.
        first_beacon = specs['cl-client-0-beacon']
        (chain_config_path,) = [
            arg.split('=', 1)[1] for arg in first_beacon.cmd if arg.startswith('--chain-config-file=')
        ]
        staged = {staged.dest.service_path: staged.source for staged in first_beacon.files}
        self.assertEqual(staged[chain_config_path], network.genesis.genesis_config_path)
        self.assertTrue(os.path.isfile(network.genesis.genesis_config_path))
        self.assertIn('--boot-nodes=enr:10.0.0.3', specs['cl-client-1-beacon'].cmd)
        self.assertIn('--bootstrap-node=enr:10.0.0.5', specs['cl-client-2-beacon'].cmd)

        # Every participant gets the same genesis.
        for service_id in ('cl-client-0-beacon', 'cl-client-2-beacon'):
            sources = {staged.source for staged in specs[service_id].files}
            self.assertIn(network.genesis.genesis_state_path, sources)
        sources = {staged.source for staged in specs['cl-client-1-beacon'].files}
        self.assertIn(network.genesis.output_dir, sources)

    async def test_malformed_images_launch_nothing(self):
        self.config.participants[2] = ParticipantConfig(
            cl_client='prysm',
            cl_images='prysm-beacon:latest',
            el_rpc_url='http://10.0.0.100:8551',
            keystore=self.config.participants[0].keystore,
        )
        with self.assertRaises(ConfigurationError):
            await launch_participant_network(
                self.runtime, self.config, self.jwt_secret_path,
                rest_client_factory=rest_client_factory,
            )
        self.assertEqual(self.runtime.launched, [])


if __name__ == '__main__':
    unittest.main()
