from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from ..beacon_api import NodeIdentity
from ..genesis import GenesisArtifactBundle
from ..launch_spec import ClientLaunchSpec, ImagePair, LogLevel, PortSpec
from ..staging import SharedPath

LOG = logging.getLogger(__name__)

METRICS_PATH = '/metrics'


@dataclass(frozen=True)
class ELClientContext:
    rpc_url: str
    "URL of the paired execution client's RPC endpoint"


@dataclass(frozen=True)
class KeystoreDirs:
    """
    Launcher-local directories holding the validator keys of one participant.
    """
    raw_keys_dir: str
    "EIP-2335 keystores, one subdirectory per validator public key"

    raw_secrets_dir: str
    "keystore passwords, one file per validator public key"

    prysm_dir: str
    "Prysm wallet directory"


@dataclass(frozen=True)
class MetricsInfo:
    name: str
    path: str
    url: str


@dataclass(frozen=True)
class ClientNetworkContext:
    """
    A launched participant as seen by the rest of the network. Later participants use it as their
    bootnode.
    """
    identity: NodeIdentity
    http_port_id: str
    metrics: Tuple[MetricsInfo, ...]

    @property
    def enr(self) -> str:
        return self.identity.address_record

    @property
    def ip_address(self) -> str:
        return self.identity.private_ip

    @property
    def http_port(self) -> int:
        return self.identity.ports[self.http_port_id]


@dataclass(frozen=True)
class BeaconEndpoints:
    rpc: str
    http: str


class ClientFamily(ABC):
    """
    Everything that differs between consensus client implementations: port layouts, log level
    names and the command line of the beacon node and validator client.

    Builders are pure. Files a service needs are declared in the launch spec rather than copied.
    """
    name: str
    http_port_id: str
    beacon_monitoring_port_id: str
    validator_monitoring_port_id: str

    def __init__(
            self,
            log_levels: Mapping[LogLevel, str],
            beacon_ports: Mapping[str, PortSpec],
            validator_ports: Mapping[str, PortSpec],
    ):
        self.log_levels = MappingProxyType(dict(log_levels))
        self.beacon_ports = MappingProxyType(dict(beacon_ports))
        self.validator_ports = MappingProxyType(dict(validator_ports))

    def parse_images(self, images: str) -> ImagePair:
        """
        Parse the configured image reference(s). By default the same image runs both roles.
        """
        image = images.strip()
        return ImagePair(beacon=image, validator=image)

    @abstractmethod
    def beacon_endpoints(self, identity: NodeIdentity) -> BeaconEndpoints:
        """Endpoints of a beacon node in the form the validator client expects them."""
        pass

    @abstractmethod
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
        """
        Build the beacon node launch spec.

        :param bootnode: the node to bootstrap from, or None to launch the network's first node
        :param extra_params: appended verbatim after the generated arguments
        """
        pass

    @abstractmethod
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
        """
        Build the validator client launch spec.

        :param extra_params: appended verbatim after the generated arguments
        """
        pass
