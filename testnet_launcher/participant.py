"""
The module exporting the ParticipantLauncher.

A participant is one consensus client beacon node and the validator client attached to it. The
launcher brings a participant up in strict order:

    INIT -> GENERATING_GENESIS -> LAUNCHING_BEACON -> AWAITING_BEACON_HEALTH
         -> FETCHING_IDENTITY -> LAUNCHING_VALIDATOR -> READY

Any failure moves it to FAILED and the error propagates to the caller. The only retried step is
the bounded beacon health poll. Nothing launched is torn down on failure, that is up to the
caller.
"""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Callable, List, Optional, Protocol

from .beacon_api import BeaconRestClient, NodeIdentity, fetch_node_identity, \
    wait_for_beacon_availability
from .clients import ClientFamily, ClientNetworkContext, ELClientContext, MetricsInfo, \
    METRICS_PATH
from .config import HealthCheckConfig, ParticipantConfig
from .exceptions import LaunchAborted
from .genesis import GenesisArtifactBundle
from .launch_spec import ClientLaunchSpec, ImagePair, LogLevel, resolve_client_log_level
from .runtime import LaunchSpecSupplier, ServiceHandle, ServiceRuntime
from .staging import SharedPath, stage_files
from .util import ExitMixin

LOG = logging.getLogger(__name__)

BEACON_SUFFIX_SERVICE_ID = 'beacon'
VALIDATOR_SUFFIX_SERVICE_ID = 'validator'


class LaunchState(Enum):
    INIT = 'init'
    GENERATING_GENESIS = 'generating-genesis'
    LAUNCHING_BEACON = 'launching-beacon'
    AWAITING_BEACON_HEALTH = 'awaiting-beacon-health'
    FETCHING_IDENTITY = 'fetching-identity'
    LAUNCHING_VALIDATOR = 'launching-validator'
    READY = 'ready'
    FAILED = 'failed'


class GenesisSource(Protocol):
    async def get(self) -> GenesisArtifactBundle:
        ...


class ParticipantLauncher(ExitMixin):
    """
    Launches one participant's beacon node and validator client and returns the network context
    that later participants use as their bootnode.

    A validator client is never launched before its beacon node has passed the health check and
    reported its identity, since the validator is pointed at endpoints derived from it. The health
    poll is the only wait; it is abandoned when the exit event is set or the launch task is
    cancelled.
    """

    def __init__(
            self,
            runtime: ServiceRuntime,
            family: ClientFamily,
            genesis: GenesisSource,
            participant: ParticipantConfig,
            service_id: str,
            global_log_level: LogLevel,
            bootnode: Optional[ClientNetworkContext] = None,
            health_check: Optional[HealthCheckConfig] = None,
            exit_event: Optional[asyncio.Event] = None,
            rest_client_factory: Callable[[str, int], BeaconRestClient] = BeaconRestClient,
    ):
        self.runtime = runtime
        self.family = family
        self.genesis = genesis
        self.participant = participant
        self.service_id = service_id
        self.global_log_level = global_log_level
        self.bootnode = bootnode
        self.health_check = health_check or HealthCheckConfig()
        self._exit_event = exit_event or asyncio.Event()
        self._rest_client_factory = rest_client_factory

        self.beacon_service_id = f"{service_id}-{BEACON_SUFFIX_SERVICE_ID}"
        self.validator_service_id = f"{service_id}-{VALIDATOR_SUFFIX_SERVICE_ID}"
        self.state = LaunchState.INIT
        self.history: List[LaunchState] = [LaunchState.INIT]
        self.failure: Optional[BaseException] = None

    async def launch(self) -> ClientNetworkContext:
        """
        Run the launch sequence to completion.

        :return: the participant's network context
        :raise ConfigurationError: if the images or log level are invalid, before any launch
        :raise GenesisGenerationError: if the genesis data cannot be generated
        :raise StagingError: if files cannot be staged for a service
        :raise LaunchError: if a service fails to start
        :raise HealthCheckTimeout: if the beacon node does not become healthy
        :raise IdentityFetchError: if the beacon node's identity cannot be retrieved
        :raise LaunchAborted: if the exit event was set before the validator was launched
        """
        if self.state is not LaunchState.INIT:
            raise RuntimeError(f"participant {self.service_id} was already launched")

        try:
            return await self._run()
        except BaseException as err:
            self.failure = err
            self._transition(LaunchState.FAILED)
            if isinstance(err, asyncio.CancelledError):
                LOG.warning(f"Launch of participant {self.service_id} cancelled")
            else:
                LOG.error(f"Launch of participant {self.service_id} failed: {err}")
            raise

    async def _run(self) -> ClientNetworkContext:
        images = self.family.parse_images(self.participant.cl_images)
        log_level = resolve_client_log_level(
            self.participant.log_level,
            self.global_log_level,
            self.family.log_levels,
        )

        self._transition(LaunchState.GENERATING_GENESIS)
        genesis = await self.genesis.get()

        self._transition(LaunchState.LAUNCHING_BEACON)
        self._check_exit()
        beacon = await self.runtime.launch(
            self.beacon_service_id,
            self._staging_supplier(
                lambda private_ip, shared_dir: self.family.build_beacon_spec(
                    image=images.beacon,
                    private_ip=private_ip,
                    shared_dir=shared_dir,
                    bootnode=self.bootnode,
                    el_context=ELClientContext(rpc_url=self.participant.el_rpc_url),
                    log_level=log_level,
                    genesis=genesis,
                    extra_params=self.participant.beacon_extra_params,
                )
            ),
        )

        self._transition(LaunchState.AWAITING_BEACON_HEALTH)
        rest_client = self._rest_client_factory(
            beacon.private_ip,
            beacon.port_number(self.family.http_port_id),
        )
        await self._wait_for_beacon(rest_client)

        self._transition(LaunchState.FETCHING_IDENTITY)
        identity = await fetch_node_identity(rest_client, beacon)
        LOG.info(f"Beacon node {self.beacon_service_id} has ENR {identity.address_record}")

        self._transition(LaunchState.LAUNCHING_VALIDATOR)
        self._check_exit()
        validator = await self._launch_validator(images, log_level, genesis, identity)

        context = ClientNetworkContext(
            identity=identity,
            http_port_id=self.family.http_port_id,
            metrics=(
                self._metrics_info(beacon, self.family.beacon_monitoring_port_id),
                self._metrics_info(validator, self.family.validator_monitoring_port_id),
            ),
        )
        self._transition(LaunchState.READY)
        return context

    async def _wait_for_beacon(self, rest_client: BeaconRestClient) -> None:
        self._check_exit()
        pending = await self._either_or_exit(wait_for_beacon_availability(
            rest_client,
            max_retries=self.health_check.max_retries,
            retry_interval=self.health_check.retry_interval,
        ))
        if pending is not None:
            pending.cancel()
            await asyncio.wait([pending])
            raise LaunchAborted(
                f"exit requested while waiting for beacon node {self.beacon_service_id}"
            )

    async def _launch_validator(
            self,
            images: ImagePair,
            log_level: str,
            genesis: GenesisArtifactBundle,
            identity: NodeIdentity,
    ) -> ServiceHandle:
        endpoints = self.family.beacon_endpoints(identity)
        return await self.runtime.launch(
            self.validator_service_id,
            self._staging_supplier(
                lambda private_ip, shared_dir: self.family.build_validator_spec(
                    image=images.validator,
                    service_id=self.validator_service_id,
                    private_ip=private_ip,
                    shared_dir=shared_dir,
                    beacon_rpc_endpoint=endpoints.rpc,
                    beacon_http_endpoint=endpoints.http,
                    log_level=log_level,
                    genesis=genesis,
                    keystore_dirs=self.participant.keystore,
                    extra_params=self.participant.validator_extra_params,
                )
            ),
        )

    @staticmethod
    def _staging_supplier(build: LaunchSpecSupplier) -> LaunchSpecSupplier:
        """
        Wrap a launch spec builder so that the files the spec declares are staged into the
        service's shared directory before the runtime starts it.
        """
        def supplier(private_ip: str, shared_dir: SharedPath) -> ClientLaunchSpec:
            spec = build(private_ip, shared_dir)
            stage_files(spec.files)
            return spec
        return supplier

    @staticmethod
    def _metrics_info(handle: ServiceHandle, monitoring_port_id: str) -> MetricsInfo:
        return MetricsInfo(
            name=handle.service_id,
            path=METRICS_PATH,
            url=f"{handle.private_ip}:{handle.port_number(monitoring_port_id)}",
        )

    def _check_exit(self) -> None:
        if self._exited:
            raise LaunchAborted(f"exit requested during launch of participant {self.service_id}")

    def _transition(self, state: LaunchState) -> None:
        LOG.debug(f"Participant {self.service_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)
