import os.path
import tempfile
import unittest
from unittest.mock import AsyncMock, patch

from .exceptions import ExecError, LaunchError
from .launch_spec import ClientLaunchSpec, PortSpec, ServiceRole
from .runtime import DockerRuntime, ServiceHandle
from .staging import SharedPath


def make_spec(private_ip: str) -> ClientLaunchSpec:
    return ClientLaunchSpec(
        role=ServiceRole.BEACON,
        image='prysm-beacon:latest',
        ports={'http': PortSpec(3500)},
        cmd=('--accept-terms-of-use=true', f"--rpc-host={private_ip}"),
    )


class DockerRuntimeTest(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.runtime = DockerRuntime('test', self.tmpdir.name, subnet='10.10.0.0/24')

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    @patch('testnet_launcher.runtime.run_command', new_callable=AsyncMock)
    async def test_launch(self, run_command):
        run_command.return_value = (0, 'f00d\n')
        suppliers_args = []

        def supplier(private_ip: str, shared_dir: SharedPath) -> ClientLaunchSpec:
            suppliers_args.append((private_ip, shared_dir))
            return make_spec(private_ip)

        handle = await self.runtime.launch('cl-client-0-beacon', supplier)
        self.assertEqual(handle.private_ip, '10.10.0.2')
        self.assertEqual(handle.port_number('http'), 3500)
        self.assertEqual(handle.shared_dir.service_path, '/shared')
        self.assertTrue(os.path.isdir(handle.shared_dir.local_path))
        self.assertEqual(suppliers_args, [('10.10.0.2', handle.shared_dir)])

        (argv,), _ = run_command.call_args
        self.assertEqual(argv[:3], ['docker', 'run', '--detach'])
        self.assertIn('test--cl-client-0-beacon', argv)
        self.assertIn(f"{handle.shared_dir.local_path}:/shared", argv)
        self.assertEqual(
            argv[-3:],
            ['prysm-beacon:latest', '--accept-terms-of-use=true', '--rpc-host=10.10.0.2'],
        )

        second = await self.runtime.launch('cl-client-0-validator', supplier)
        self.assertEqual(second.private_ip, '10.10.0.3')

    @patch('testnet_launcher.runtime.run_command', new_callable=AsyncMock)
    async def test_relaunch_after_previous_run(self, run_command):
        run_command.return_value = (0, '')
        first = await self.runtime.launch('cl-genesis-generator', lambda ip, _: make_spec(ip))

        # The previous run's directories are left behind, as after destroy.
        runtime = DockerRuntime('test', self.tmpdir.name, subnet='10.10.0.0/24')
        second = await runtime.launch('cl-genesis-generator', lambda ip, _: make_spec(ip))

        self.assertNotEqual(first.shared_dir.local_path, second.shared_dir.local_path)
        self.assertTrue(os.path.isdir(first.shared_dir.local_path))
        self.assertTrue(os.path.isdir(second.shared_dir.local_path))
        self.assertTrue(second.shared_dir.local_path.startswith(self.tmpdir.name))

    @patch('testnet_launcher.runtime.run_command', new_callable=AsyncMock)
    async def test_launch_failure(self, run_command):
        run_command.return_value = (125, 'Unable to find image')
        with self.assertRaises(LaunchError):
            await self.runtime.launch('cl-client-0-beacon', lambda ip, _: make_spec(ip))

        run_command.side_effect = FileNotFoundError('docker')
        with self.assertRaises(LaunchError):
            await self.runtime.launch('cl-client-1-beacon', lambda ip, _: make_spec(ip))

    @patch('testnet_launcher.runtime.run_command', new_callable=AsyncMock)
    async def test_duplicate_service(self, run_command):
        run_command.return_value = (0, '')
        await self.runtime.launch('cl-client-0-beacon', lambda ip, _: make_spec(ip))
        with self.assertRaises(LaunchError):
            await self.runtime.launch('cl-client-0-beacon', lambda ip, _: make_spec(ip))

    @patch('testnet_launcher.runtime.run_command', new_callable=AsyncMock)
    async def test_execute_command(self, run_command):
        run_command.return_value = (0, '')
        handle = await self.runtime.launch('cl-genesis-generator', lambda ip, _: make_spec(ip))

        run_command.return_value = (1, 'error')
        self.assertEqual(await self.runtime.execute_command(handle, ['ls', '/shared']), (1, 'error'))
        run_command.assert_called_with(['docker', 'exec', 'test--cl-genesis-generator', 'ls', '/shared'])

        unknown = ServiceHandle(
            service_id='unknown',
            private_ip='10.10.0.9',
            ports={},
            shared_dir=handle.shared_dir,
        )
        with self.assertRaises(ExecError):
            await self.runtime.execute_command(unknown, ['ls'])

    def test_missing_port(self):
        handle = ServiceHandle(
            service_id='cl-client-0-beacon',
            private_ip='10.10.0.2',
            ports={},
            shared_dir=SharedPath(local_path='/tmp/x', service_path='/shared'),
        )
        with self.assertRaises(LaunchError):
            handle.port_number('http')

    @patch('testnet_launcher.runtime.run_command', new_callable=AsyncMock)
    async def test_destroy(self, run_command):
        run_command.side_effect = [(0, 'abc\ndef\n'), (0, ''), (0, '')]
        await self.runtime.destroy()
        self.assertEqual(
            [call.args[0][:3] for call in run_command.call_args_list],
            [['docker', 'ps', '--all'], ['docker', 'rm', '--force'], ['docker', 'network', 'rm']],
        )
        self.assertEqual(run_command.call_args_list[1].args[0][3:], ['abc', 'def'])


if __name__ == '__main__':
    unittest.main()
