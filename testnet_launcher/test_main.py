import argparse
import os.path
import tempfile
import unittest
from unittest.mock import AsyncMock, patch

import yaml

from .__main__ import run_launch
from .exceptions import ConfigurationError
from .test_config import make_config_dict


class RunLaunchTest(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self.tmpdir.name, 'config.yaml')
        self.enclave_dir = os.path.join(self.tmpdir.name, 'enclave')

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    @patch('testnet_launcher.runtime.run_command', new_callable=AsyncMock)
    async def test_misconfigured_participant_touches_nothing(self, run_command):
        config_dict = make_config_dict()
        config_dict['participants'][0]['cl_images'] = 'only-one-image'
        with open(self.config_path, 'w') as f:
            yaml.dump(config_dict, f)

        args = argparse.Namespace(
            config_path=self.config_path,
            enclave_name='test',
            enclave_dir=self.enclave_dir,
            jwt_secret_path=None,
        )
        with self.assertRaises(ConfigurationError):
            await run_launch(args)

        run_command.assert_not_called()
        self.assertFalse(os.path.exists(self.enclave_dir))


if __name__ == '__main__':
    unittest.main()
