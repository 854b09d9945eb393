from __future__ import annotations

import logging
import posixpath
from typing import List, Mapping, Optional

from .base import BeaconEndpoints, ClientFamily, ClientNetworkContext, ELClientContext, \
    KeystoreDirs
from ..beacon_api import NodeIdentity
from ..genesis import GenesisArtifactBundle
from ..launch_spec import ClientLaunchSpec, ImagePair, LogLevel, PortProtocol, PortSpec, \
    ServiceRole, parse_image_pair
from ..staging import SharedPath, StagedFile

LOG = logging.getLogger(__name__)

CONSENSUS_DATA_DIR = '/consensus-data'

TCP_DISCOVERY_PORT_ID = 'tcp-discovery'
UDP_DISCOVERY_PORT_ID = 'udp-discovery'
RPC_PORT_ID = 'rpc'
HTTP_PORT_ID = 'http'
MONITORING_PORT_ID = 'monitoring'

DISCOVERY_TCP_PORT = 13000
DISCOVERY_UDP_PORT = 12000
RPC_PORT = 4000
HTTP_PORT = 3500
BEACON_MONITORING_PORT = 8080
VALIDATOR_MONITORING_PORT = 8081

GENESIS_CONFIG_FILENAME = 'genesis-config.yml'
GENESIS_STATE_FILENAME = 'genesis.ssz'
JWT_SECRET_FILENAME = 'jwtsecret'
PASSWORD_FILENAME = 'prysm-password.txt'
VALIDATOR_KEYS_DIRNAME = 'validator-keys'
VALIDATOR_SECRETS_DIRNAME = 'validator-secrets'

MIN_PEERS = 1
DEFAULT_PRYSM_PASSWORD = 'password'

PRYSM_LOG_LEVELS = {
    LogLevel.ERROR: 'error',
    LogLevel.WARN: 'warn',
    LogLevel.INFO: 'info',
    LogLevel.DEBUG: 'debug',
    LogLevel.TRACE: 'trace',
}

BEACON_PORTS = {
    TCP_DISCOVERY_PORT_ID: PortSpec(DISCOVERY_TCP_PORT, PortProtocol.TCP),
    UDP_DISCOVERY_PORT_ID: PortSpec(DISCOVERY_UDP_PORT, PortProtocol.UDP),
    RPC_PORT_ID: PortSpec(RPC_PORT, PortProtocol.TCP),
    HTTP_PORT_ID: PortSpec(HTTP_PORT, PortProtocol.TCP),
    MONITORING_PORT_ID: PortSpec(BEACON_MONITORING_PORT, PortProtocol.TCP),
}

VALIDATOR_PORTS = {
    MONITORING_PORT_ID: PortSpec(VALIDATOR_MONITORING_PORT, PortProtocol.TCP),
}


class PrysmClientFamily(ClientFamily):
    """
    Prysm ships the beacon node and validator client as two images, so the configured image string
    is "<beacon-image>,<validator-image>".
    """
    name = 'prysm'
    http_port_id = HTTP_PORT_ID
    beacon_monitoring_port_id = MONITORING_PORT_ID
    validator_monitoring_port_id = MONITORING_PORT_ID

    def __init__(
            self,
            prysm_password: str = DEFAULT_PRYSM_PASSWORD,
            log_levels: Mapping[LogLevel, str] = PRYSM_LOG_LEVELS,
    ):
        super().__init__(log_levels, BEACON_PORTS, VALIDATOR_PORTS)
        self.prysm_password = prysm_password

    def parse_images(self, images: str) -> ImagePair:
        return parse_image_pair(images)

    def beacon_endpoints(self, identity: NodeIdentity) -> BeaconEndpoints:
        return BeaconEndpoints(
            rpc=f"{identity.private_ip}:{identity.ports[RPC_PORT_ID]}",
            http=f"{identity.private_ip}:{identity.ports[HTTP_PORT_ID]}",
        )

    def build_beacon_spec(
            self,
            image: str,
            private_ip: str,
            shared_dir: SharedPath,
            bootnode: Optional[ClientNetworkContext],
            el_context: ELClientContext,
            log_level: str,
            genesis: GenesisArtifactBundle,
            extra_params: List[str],
    ) -> ClientLaunchSpec:
        genesis_config = shared_dir.child(GENESIS_CONFIG_FILENAME)
        genesis_state = shared_dir.child(GENESIS_STATE_FILENAME)
        jwt_secret = shared_dir.child(JWT_SECRET_FILENAME)

        cmd = [
            # Mandatory to run the node
            '--accept-terms-of-use=true',
            # Prysm requires a network selector even for custom chain configs
            '--prater',
            f"--datadir={CONSENSUS_DATA_DIR}",
            f"--chain-config-file={genesis_config.service_path}",
            f"--genesis-state={genesis_state.service_path}",
            f"--http-web3provider={el_context.rpc_url}",
            f"--execution-provider={el_context.rpc_url}",
            f"--jwt-secret={jwt_secret.service_path}",
            '--http-modules=prysm,eth',
            f"--rpc-host={private_ip}",
            f"--rpc-port={RPC_PORT}",
            '--grpc-gateway-host=0.0.0.0',
            f"--grpc-gateway-port={HTTP_PORT}",
            f"--p2p-tcp-port={DISCOVERY_TCP_PORT}",
            f"--p2p-udp-port={DISCOVERY_UDP_PORT}",
            f"--min-sync-peers={MIN_PEERS}",
            f"--verbosity={log_level}",
            '--subscribe-all-subnets=true',
            '--disable-monitoring=false',
            f"--monitoring-host={private_ip}",
            f"--monitoring-port={BEACON_MONITORING_PORT}",
        ]
        if bootnode is not None:
            cmd.append(f"--bootstrap-node={bootnode.enr}")
        if extra_params:
            cmd.extend(extra_params)

        return ClientLaunchSpec(
            role=ServiceRole.BEACON,
            image=image,
            ports=self.beacon_ports,
            cmd=tuple(cmd),
            files=(
                StagedFile(dest=genesis_config, source=genesis.genesis_config_path),
                StagedFile(dest=genesis_state, source=genesis.genesis_state_path),
                StagedFile(dest=jwt_secret, source=genesis.jwt_secret_path),
            ),
        )

    def build_validator_spec(
            self,
            image: str,
            service_id: str,
            private_ip: str,
            shared_dir: SharedPath,
            beacon_rpc_endpoint: str,
            beacon_http_endpoint: str,
            log_level: str,
            genesis: GenesisArtifactBundle,
            keystore_dirs: KeystoreDirs,
            extra_params: List[str],
    ) -> ClientLaunchSpec:
        genesis_config = shared_dir.child(GENESIS_CONFIG_FILENAME)
        validator_keys = shared_dir.child(VALIDATOR_KEYS_DIRNAME)
        validator_secrets = shared_dir.child(VALIDATOR_SECRETS_DIRNAME)
        password_file = shared_dir.child(PASSWORD_FILENAME)

        cmd = [
            '--accept-terms-of-use=true',
            '--prater',
            f"--chain-config-file={genesis_config.service_path}",
            f"--beacon-rpc-gateway-provider={beacon_http_endpoint}",
            f"--beacon-rpc-provider={beacon_rpc_endpoint}",
            f"--wallet-dir={validator_secrets.service_path}",
            f"--wallet-password-file={password_file.service_path}",
            f"--datadir={posixpath.join(CONSENSUS_DATA_DIR, service_id)}",
            f"--verbosity={log_level}",
            '--disable-monitoring=false',
            f"--monitoring-host={private_ip}",
            f"--monitoring-port={VALIDATOR_MONITORING_PORT}",
        ]
        if extra_params:
            cmd.extend(extra_params)

        return ClientLaunchSpec(
            role=ServiceRole.VALIDATOR,
            image=image,
            ports=self.validator_ports,
            cmd=tuple(cmd),
            files=(
                StagedFile(dest=genesis_config, source=genesis.genesis_config_path),
                StagedFile(dest=validator_keys, source=keystore_dirs.raw_keys_dir),
                StagedFile(dest=validator_secrets, source=keystore_dirs.prysm_dir),
                StagedFile(dest=password_file, content=self.prysm_password),
            ),
        )
