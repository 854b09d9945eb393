"""
Generation of the consensus layer genesis data shared by every node of a network.

The genesis state is built by the eth2-testnet-genesis tool, executed inside a helper service
that shares a directory with the launcher. The output directory has the following layout, which
the consensus clients depend on:

    config.yaml             chain configuration (clients hardcode this filename)
    genesis.ssz             genesis beacon state
    deploy_block.txt        deposit contract deploy block number
    deposit_contract.txt    deposit contract address
    jwtsecret               secret for authenticated EL <-> CL RPC
    tranches/               public keys of the preregistered validators
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
import logging
import os.path
import secrets
import time
from typing import List, Optional

from .exceptions import ExecError, GenesisCommandError, GenesisGenerationError, StagingError
from .runtime import ServiceHandle, ServiceRuntime
from .staging import copy_to_shared_path, make_shared_dirs, write_to_shared_path
from .templates import GENESIS_CONFIG_TEMPLATE, MNEMONICS_TEMPLATE, load_template, \
    render_template

LOG = logging.getLogger(__name__)

GENERATION_INSTANCE_DIR_PREFIX = 'cl-genesis-'
CONFIG_DIRNAME = 'config'
OUTPUT_DIRNAME = 'output'
GENERATION_CONFIG_FILENAME = 'config.yaml'
GENERATION_MNEMONICS_FILENAME = 'mnemonics.yaml'

# WARNING: Do not change this! The CL clients are hardcoded to look for this filename.
GENESIS_CONFIG_FILENAME = 'config.yaml'
GENESIS_STATE_FILENAME = 'genesis.ssz'
DEPLOY_BLOCK_FILENAME = 'deploy_block.txt'
DEPOSIT_CONTRACT_FILENAME = 'deposit_contract.txt'
JWT_SECRET_FILENAME = 'jwtsecret'
TRANCHES_DIRNAME = 'tranches'

GENESIS_BINARY_PATH = '/usr/local/bin/eth2-testnet-genesis'
DEPLOY_BLOCK = '0'
ETH1_BLOCK = '0x0000000000000000000000000000000000000000000000000000000000000000'
DEFAULT_DEPOSIT_CONTRACT_ADDRESS = '0x4242424242424242424242424242424242424242'


@dataclass(frozen=True)
class GenesisConfig:
    network_id: str
    seconds_per_slot: int
    total_terminal_difficulty: int
    altair_fork_epoch: int
    merge_fork_epoch: int
    preregistered_validator_keys_mnemonic: str
    num_validator_keys_to_preregister: int
    genesis_unix_timestamp: int = 0
    deposit_contract_address: str = DEFAULT_DEPOSIT_CONTRACT_ADDRESS


@dataclass(frozen=True)
class GenesisArtifactBundle:
    """
    Launcher-local absolute paths of the generated genesis data.
    """
    output_dir: str
    genesis_config_path: str
    genesis_state_path: str
    deploy_block_path: str
    deposit_contract_path: str
    jwt_secret_path: str
    tranches_dir: str

    def paths(self) -> List[str]:
        return [
            self.genesis_config_path,
            self.genesis_state_path,
            self.deploy_block_path,
            self.deposit_contract_path,
            self.jwt_secret_path,
            self.tranches_dir,
        ]


async def generate_genesis_data(
        runtime: ServiceRuntime,
        generator: ServiceHandle,
        config: GenesisConfig,
        jwt_secret_path: str,
) -> GenesisArtifactBundle:
    """
    Generate the CL genesis data for a network.

    Each call works in its own freshly created directory, so repeated runs against the same shared
    directory do not collide.

    :param runtime: runtime running the generator service
    :param generator: the service with the genesis tool installed
    :param config: genesis parameters
    :param jwt_secret_path: launcher-local path of the JWT secret to include in the bundle
    :return: the generated bundle
    :raise GenesisCommandError: if the genesis tool exits with a non-zero code
    :raise GenesisGenerationError: on any other failure
    """
    instance_dir = generator.shared_dir.child(f"{GENERATION_INSTANCE_DIR_PREFIX}{time.time_ns()}")
    config_dir = instance_dir.child(CONFIG_DIRNAME)
    output_dir = instance_dir.child(OUTPUT_DIRNAME)

    generation_config = config_dir.child(GENERATION_CONFIG_FILENAME)
    generation_mnemonics = config_dir.child(GENERATION_MNEMONICS_FILENAME)
    try:
        make_shared_dirs(instance_dir, config_dir, output_dir)
        template_data = asdict(config)
        render_template(load_template(GENESIS_CONFIG_TEMPLATE), template_data, generation_config)
        render_template(load_template(MNEMONICS_TEMPLATE), template_data, generation_mnemonics)
    except StagingError as err:
        raise GenesisGenerationError(
            f"failed to prepare genesis generation config in {instance_dir.local_path}"
        ) from err

    genesis_state = output_dir.child(GENESIS_STATE_FILENAME)
    tranches_dir = output_dir.child(TRANCHES_DIRNAME)
    cmd = [
        GENESIS_BINARY_PATH,
        'phase0',
        '--config', generation_config.service_path,
        '--eth1-block', ETH1_BLOCK,
        '--mnemonics', generation_mnemonics.service_path,
        '--timestamp', str(config.genesis_unix_timestamp),
        '--tranches-dir', tranches_dir.service_path,
        '--state-output', genesis_state.service_path,
    ]
    LOG.info(f"Generating CL genesis data for network {config.network_id} in "
             f"{instance_dir.local_path}")
    try:
        exit_code, output = await runtime.execute_command(generator, cmd)
    except ExecError as err:
        raise GenesisGenerationError(
            f"failed to execute command '{' '.join(cmd)}' to generate the CL genesis data"
        ) from err
    if exit_code != 0:
        raise GenesisCommandError(
            f"expected CL genesis data generation command '{' '.join(cmd)}' to return exit code 0 "
            f"but returned {exit_code} with the following logs:\n{output}",
            exit_code=exit_code,
            output=output,
        )

    genesis_config = output_dir.child(GENESIS_CONFIG_FILENAME)
    deploy_block = output_dir.child(DEPLOY_BLOCK_FILENAME)
    deposit_contract = output_dir.child(DEPOSIT_CONTRACT_FILENAME)
    jwt_secret = output_dir.child(JWT_SECRET_FILENAME)
    try:
        copy_to_shared_path(generation_config.local_path, genesis_config)
        write_to_shared_path(DEPLOY_BLOCK, deploy_block)
        write_to_shared_path(config.deposit_contract_address, deposit_contract)
        copy_to_shared_path(jwt_secret_path, jwt_secret)
    except StagingError as err:
        raise GenesisGenerationError(
            f"failed to write CL genesis output files to {output_dir.local_path}"
        ) from err

    bundle = GenesisArtifactBundle(
        output_dir=os.path.abspath(output_dir.local_path),
        genesis_config_path=os.path.abspath(genesis_config.local_path),
        genesis_state_path=os.path.abspath(genesis_state.local_path),
        deploy_block_path=os.path.abspath(deploy_block.local_path),
        deposit_contract_path=os.path.abspath(deposit_contract.local_path),
        jwt_secret_path=os.path.abspath(jwt_secret.local_path),
        tranches_dir=os.path.abspath(tranches_dir.local_path),
    )
    _check_bundle(bundle)
    LOG.info(f"Generated CL genesis data at {bundle.output_dir}")
    return bundle


def _check_bundle(bundle: GenesisArtifactBundle) -> None:
    for path in bundle.paths():
        if os.path.isdir(path):
            empty = not os.listdir(path)
        elif os.path.isfile(path):
            empty = os.path.getsize(path) == 0
        else:
            raise GenesisGenerationError(f"genesis generation did not produce {path}")
        if empty:
            raise GenesisGenerationError(f"genesis generation produced empty {path}")


class GenesisDataProvider(object):
    """
    Generates the genesis data of a network once and hands the same bundle to every caller.

    Concurrent callers wait on the same generation. A failed generation is not cached, so the next
    caller tries again.
    """
    def __init__(
            self,
            runtime: ServiceRuntime,
            generator: ServiceHandle,
            config: GenesisConfig,
            jwt_secret_path: str,
    ):
        self.runtime = runtime
        self.generator = generator
        self.config = config
        self.jwt_secret_path = jwt_secret_path
        self._bundle: Optional[GenesisArtifactBundle] = None
        self._lock = asyncio.Lock()

    async def get(self) -> GenesisArtifactBundle:
        async with self._lock:
            if self._bundle is None:
                self._bundle = await generate_genesis_data(
                    self.runtime,
                    self.generator,
                    self.config,
                    self.jwt_secret_path,
                )
            return self._bundle


def write_jwt_secret(path: str) -> None:
    """
    Write a new random hex-encoded 32-byte JWT secret.

    :param path: the file to write
    """
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, 'w') as f:
        f.write('0x' + secrets.token_hex(32))
    os.chmod(path, 0o600)
