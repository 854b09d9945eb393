from __future__ import annotations

import logging
from typing import List, Mapping, Optional

from .base import BeaconEndpoints, ClientFamily, ClientNetworkContext, ELClientContext, \
    KeystoreDirs
from ..beacon_api import NodeIdentity
from ..genesis import GenesisArtifactBundle
from ..launch_spec import ClientLaunchSpec, LogLevel, PortProtocol, PortSpec, ServiceRole
from ..staging import SharedPath, StagedFile

LOG = logging.getLogger(__name__)

CONSENSUS_DATA_DIR = '/consensus-data'

TCP_DISCOVERY_PORT_ID = 'tcp-discovery'
UDP_DISCOVERY_PORT_ID = 'udp-discovery'
HTTP_PORT_ID = 'http'
MONITORING_PORT_ID = 'monitoring'

DISCOVERY_PORT = 9000
HTTP_PORT = 4000
BEACON_MONITORING_PORT = 5054
VALIDATOR_MONITORING_PORT = 5064

# The whole genesis output directory is staged since Lighthouse reads config.yaml, genesis.ssz and
# deploy_block.txt from its testnet directory.
TESTNET_DIRNAME = 'testnet'
JWT_SECRET_FILENAME = 'jwtsecret'
VALIDATOR_KEYS_DIRNAME = 'validator-keys'
VALIDATOR_SECRETS_DIRNAME = 'validator-secrets'

LIGHTHOUSE_LOG_LEVELS = {
    LogLevel.ERROR: 'error',
    LogLevel.WARN: 'warn',
    LogLevel.INFO: 'info',
    LogLevel.DEBUG: 'debug',
    LogLevel.TRACE: 'trace',
}

BEACON_PORTS = {
    TCP_DISCOVERY_PORT_ID: PortSpec(DISCOVERY_PORT, PortProtocol.TCP),
    UDP_DISCOVERY_PORT_ID: PortSpec(DISCOVERY_PORT, PortProtocol.UDP),
    HTTP_PORT_ID: PortSpec(HTTP_PORT, PortProtocol.TCP),
    MONITORING_PORT_ID: PortSpec(BEACON_MONITORING_PORT, PortProtocol.TCP),
}

VALIDATOR_PORTS = {
    MONITORING_PORT_ID: PortSpec(VALIDATOR_MONITORING_PORT, PortProtocol.TCP),
}


class LighthouseClientFamily(ClientFamily):
    """
    Lighthouse runs both roles from a single image, as subcommands of the same binary.
    """
    name = 'lighthouse'
    http_port_id = HTTP_PORT_ID
    beacon_monitoring_port_id = MONITORING_PORT_ID
    validator_monitoring_port_id = MONITORING_PORT_ID

    def __init__(self, log_levels: Mapping[LogLevel, str] = LIGHTHOUSE_LOG_LEVELS):
        super().__init__(log_levels, BEACON_PORTS, VALIDATOR_PORTS)

    def beacon_endpoints(self, identity: NodeIdentity) -> BeaconEndpoints:
        # The validator client talks to the beacon node over the HTTP API only.
        url = f"http://{identity.private_ip}:{identity.ports[HTTP_PORT_ID]}"
        return BeaconEndpoints(rpc=url, http=url)

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
        testnet_dir = shared_dir.child(TESTNET_DIRNAME)
        jwt_secret = shared_dir.child(JWT_SECRET_FILENAME)

        cmd = [
            'lighthouse',
            'beacon_node',
            f"--debug-level={log_level}",
            f"--datadir={CONSENSUS_DATA_DIR}",
            f"--testnet-dir={testnet_dir.service_path}",
            '--disable-enr-auto-update',
            f"--enr-address={private_ip}",
            f"--enr-udp-port={DISCOVERY_PORT}",
            f"--enr-tcp-port={DISCOVERY_PORT}",
            '--listen-address=0.0.0.0',
            f"--port={DISCOVERY_PORT}",
            '--http',
            '--http-address=0.0.0.0',
            f"--http-port={HTTP_PORT}",
            '--http-allow-sync-stalled',
            '--disable-packet-filter',
            '--subscribe-all-subnets',
            f"--execution-endpoints={el_context.rpc_url}",
            f"--jwt-secrets={jwt_secret.service_path}",
            '--metrics',
            f"--metrics-address={private_ip}",
            '--metrics-allow-origin=*',
            f"--metrics-port={BEACON_MONITORING_PORT}",
        ]
        if bootnode is not None:
            cmd.append(f"--boot-nodes={bootnode.enr}")
        if extra_params:
            cmd.extend(extra_params)

        return ClientLaunchSpec(
            role=ServiceRole.BEACON,
            image=image,
            ports=self.beacon_ports,
            cmd=tuple(cmd),
            files=(
                StagedFile(dest=testnet_dir, source=genesis.output_dir),
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
        testnet_dir = shared_dir.child(TESTNET_DIRNAME)
        validator_keys = shared_dir.child(VALIDATOR_KEYS_DIRNAME)
        validator_secrets = shared_dir.child(VALIDATOR_SECRETS_DIRNAME)

        cmd = [
            'lighthouse',
            'validator_client',
            f"--debug-level={log_level}",
            f"--testnet-dir={testnet_dir.service_path}",
            f"--validators-dir={validator_keys.service_path}",
            f"--secrets-dir={validator_secrets.service_path}",
            '--init-slashing-protection',
            f"--beacon-nodes={beacon_http_endpoint}",
            '--metrics',
            f"--metrics-address={private_ip}",
            '--metrics-allow-origin=*',
            f"--metrics-port={VALIDATOR_MONITORING_PORT}",
        ]
        if extra_params:
            cmd.extend(extra_params)

        return ClientLaunchSpec(
            role=ServiceRole.VALIDATOR,
            image=image,
            ports=self.validator_ports,
            cmd=tuple(cmd),
            files=(
                StagedFile(dest=testnet_dir, source=genesis.output_dir),
                StagedFile(dest=validator_keys, source=keystore_dirs.raw_keys_dir),
                StagedFile(dest=validator_secrets, source=keystore_dirs.raw_secrets_dir),
            ),
        )
