import os.path
import tempfile
import unittest
from string import Template

import yaml

from .exceptions import RenderError
from .staging import SharedPath
from .templates import GENESIS_CONFIG_TEMPLATE, MNEMONICS_TEMPLATE, load_template, \
    render_template

TEST_MNEMONIC = 'giant issue aisle success illegal bike spike question tent bar rely arctic ' \
    'volcano long crawl hungry vocal artwork sniff fantasy very lucky have athlete'


class TemplatesTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def _dest(self, name: str) -> SharedPath:
        return SharedPath(local_path=os.path.join(self.tmpdir.name, name), service_path=f"/shared/{name}")

    def test_render_mnemonics(self):
        dest = self._dest('mnemonics.yaml')
        render_template(load_template(MNEMONICS_TEMPLATE), {
            'preregistered_validator_keys_mnemonic': TEST_MNEMONIC,
            'num_validator_keys_to_preregister': 128,
        }, dest)

        with open(dest.local_path) as f:
            mnemonics = yaml.safe_load(f)
        self.assertEqual(mnemonics, [{'mnemonic': TEST_MNEMONIC, 'count': 128}])

    def test_render_genesis_config(self):
        dest = self._dest('config.yaml')
        render_template(load_template(GENESIS_CONFIG_TEMPLATE), {
            'network_id': '3151908',
            'num_validator_keys_to_preregister': 64,
            'genesis_unix_timestamp': 1660000000,
            'altair_fork_epoch': 0,
            'merge_fork_epoch': 2,
            'total_terminal_difficulty': 0,
            'seconds_per_slot': 12,
            'deposit_contract_address': '0x4242424242424242424242424242424242424242',
        }, dest)

        with open(dest.local_path) as f:
            text = f.read()
        self.assertNotIn('$', text)
        self.assertIn('SECONDS_PER_SLOT: 12', text)

    def test_missing_placeholder_value(self):
        with self.assertRaises(RenderError):
            render_template(Template('count: $count'), {}, self._dest('out.yaml'))

    def test_unknown_template(self):
        with self.assertRaises(RenderError):
            load_template('missing.tmpl')


if __name__ == '__main__':
    unittest.main()
