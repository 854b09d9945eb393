"""
Assembly of a whole participant network on one runtime.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import time
from typing import Callable, List, Optional

from .beacon_api import BeaconRestClient
from .clients import ClientFamily, ClientNetworkContext, create_client_family
from .config import NetworkConfig
from .genesis import GenesisArtifactBundle, GenesisDataProvider
from .launch_spec import ClientLaunchSpec, ServiceRole, resolve_client_log_level
from .participant import ParticipantLauncher
from .runtime import ServiceRuntime

LOG = logging.getLogger(__name__)

GENESIS_GENERATOR_SERVICE_ID = 'cl-genesis-generator'
PARTICIPANT_SERVICE_ID_PREFIX = 'cl-client-'


@dataclass(frozen=True)
class ParticipantNetwork:
    genesis: GenesisArtifactBundle
    contexts: List[ClientNetworkContext]


def _genesis_generator_spec(image: str) -> ClientLaunchSpec:
    # The container only has to stay up so the genesis tool can be executed in it.
    return ClientLaunchSpec(
        role=ServiceRole.GENESIS_GENERATOR,
        image=image,
        ports={},
        cmd=('infinity',),
        entrypoint='sleep',
    )


def create_client_families(config: NetworkConfig) -> List[ClientFamily]:
    """
    Create the client family of every participant and check its images, without side effects.

    :return: one client family per participant, in order
    :raise ConfigurationError: if a client name, image string or log level is invalid
    """
    families = [
        create_client_family(participant.cl_client, config.prysm_password)
        for participant in config.participants
    ]
    for family, participant in zip(families, config.participants):
        family.parse_images(participant.cl_images)
        resolve_client_log_level(participant.log_level, config.log_level, family.log_levels)
    return families


async def launch_participant_network(
        runtime: ServiceRuntime,
        config: NetworkConfig,
        jwt_secret_path: str,
        exit_event: Optional[asyncio.Event] = None,
        rest_client_factory: Callable[[str, int], BeaconRestClient] = BeaconRestClient,
) -> ParticipantNetwork:
    """
    Generate the genesis data and launch every configured participant in order.

    Participants are launched one after another; each beacon node bootstraps from the previous
    participant's beacon node and the first one bootstraps the network.

    :param runtime: the runtime to launch services on
    :param config: network configuration
    :param jwt_secret_path: launcher-local path of the EL/CL JWT secret
    :param exit_event: when set, aborts a participant launch waiting on its beacon node
    :param rest_client_factory: creates the REST client for a beacon node IP and HTTP port
    :return: the genesis bundle and the context of every participant, in launch order
    :raise ConfigurationError: if a participant is misconfigured, before anything is launched
    """
    exit_event = exit_event or asyncio.Event()
    families = create_client_families(config)

    generator = await runtime.launch(
        GENESIS_GENERATOR_SERVICE_ID,
        lambda _private_ip, _shared_dir: _genesis_generator_spec(config.genesis_generator_image),
    )
    genesis = GenesisDataProvider(
        runtime=runtime,
        generator=generator,
        config=config.genesis_config(int(time.time())),
        jwt_secret_path=jwt_secret_path,
    )

    contexts: List[ClientNetworkContext] = []
    bootnode: Optional[ClientNetworkContext] = None
    for index, (family, participant) in enumerate(zip(families, config.participants)):
        launcher = ParticipantLauncher(
            runtime=runtime,
            family=family,
            genesis=genesis,
            participant=participant,
            service_id=f"{PARTICIPANT_SERVICE_ID_PREFIX}{index}",
            global_log_level=config.log_level,
            bootnode=bootnode,
            health_check=config.health_check,
            exit_event=exit_event,
            rest_client_factory=rest_client_factory,
        )
        LOG.info(f"Launching participant {launcher.service_id} ({participant.cl_client})")
        bootnode = await launcher.launch()
        contexts.append(bootnode)
        LOG.info(f"Participant {launcher.service_id} ready at {bootnode.ip_address}")

    return ParticipantNetwork(genesis=await genesis.get(), contexts=contexts)
