"""Consensus client family launch spec builders."""

from typing import List

from .base import BeaconEndpoints, ClientFamily, ClientNetworkContext, ELClientContext, \
    KeystoreDirs, MetricsInfo, METRICS_PATH
from .lighthouse import LighthouseClientFamily
from .prysm import DEFAULT_PRYSM_PASSWORD, PrysmClientFamily
from ..exceptions import ConfigurationError


_CLIENT_FAMILY_CLASSES = {
    'lighthouse': LighthouseClientFamily,
    'prysm': PrysmClientFamily,
}


def get_client_family_names() -> List[str]:
    return sorted(_CLIENT_FAMILY_CLASSES)


def create_client_family(name: str, prysm_password: str = DEFAULT_PRYSM_PASSWORD) -> ClientFamily:
    """
    Factory for creating a ClientFamily by name.

    :param name: the consensus client name
    :param prysm_password: wallet password for Prysm validator clients
    :return: the client family
    :raise ConfigurationError: if there is no client family with that name
    """
    try:
        cls = _CLIENT_FAMILY_CLASSES[name]
    except KeyError:
        raise ConfigurationError(f"invalid consensus client name: {name}")

    if cls is PrysmClientFamily:
        return PrysmClientFamily(prysm_password=prysm_password)
    return cls()
