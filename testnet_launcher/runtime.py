"""
Interfaces and a Docker implementation for the runtime that starts client services.

A runtime launches a service from a ClientLaunchSpec supplier. The supplier is called with the
private IP address and shared directory allocated to the service so that the launch spec can bind
to the service's own address and reference staged files by their in-service paths.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import ipaddress
import logging
import os
import os.path
import time
from typing import Callable, Dict, Iterator, List, Tuple

from .exceptions import ExecError, LaunchError, StagingError
from .launch_spec import ClientLaunchSpec, PortSpec
from .staging import SharedPath
from .util import run_command

LOG = logging.getLogger(__name__)

SHARED_DIR_MOUNTPOINT = '/shared'
DEFAULT_SUBNET = '172.30.0.0/16'
ENCLAVE_LABEL = 'testnet-launcher.enclave'

LaunchSpecSupplier = Callable[[str, SharedPath], ClientLaunchSpec]


@dataclass(frozen=True)
class ServiceHandle:
    service_id: str
    private_ip: str
    ports: Dict[str, PortSpec]
    shared_dir: SharedPath

    def port_number(self, port_id: str) -> int:
        try:
            return self.ports[port_id].number
        except KeyError:
            raise LaunchError(
                f"expected service {self.service_id} to have port with ID '{port_id}', "
                "but none was found"
            )


class ServiceRuntime(ABC):
    """
    Interface for the runtime that actually starts services.
    """

    @abstractmethod
    async def launch(self, service_id: str, supplier: LaunchSpecSupplier) -> ServiceHandle:
        """
        Start a service.

        :param service_id: a unique service name
        :param supplier: builds the launch spec from the service's private IP and shared dir
        :return: handle to the running service
        :raise LaunchError: if the service cannot be started
        """
        pass

    @abstractmethod
    async def execute_command(self, handle: ServiceHandle, argv: List[str]) -> Tuple[int, str]:
        """
        Run a command inside a running service.

        :return: the exit code and combined stdout/stderr output
        :raise ExecError: if the command could not be run at all
        """
        pass


class DockerRuntime(ServiceRuntime):
    """
    Runs each service as a detached Docker container on a dedicated network (the enclave).

    Each service gets a host directory under a fresh per-run directory of enclave_dir, mounted in
    the container at /shared. Runs never reuse directories, so the same enclave can be launched
    again after it was destroyed.
    Private IPs are allocated sequentially from the network's subnet.
    """
    def __init__(self, enclave_name: str, enclave_dir: str, subnet: str = DEFAULT_SUBNET):
        self.enclave_name = enclave_name
        self.enclave_dir = os.path.abspath(enclave_dir)
        self.run_dir = os.path.join(self.enclave_dir, f"{enclave_name}-{time.time_ns()}")
        self.subnet = ipaddress.ip_network(subnet)
        self.network_name = f"{enclave_name}-net"
        # The first host address is the network gateway.
        self._hosts: Iterator = self.subnet.hosts()
        next(self._hosts)
        self._containers: Dict[str, str] = {}

    async def create(self) -> None:
        """
        Create the enclave's Docker network and the host directory of this run.

        :raise LaunchError: if the network cannot be created
        """
        os.makedirs(self.run_dir, exist_ok=True)
        exit_code, output = await self._docker(
            'network', 'create',
            '--subnet', str(self.subnet),
            '--label', f"{ENCLAVE_LABEL}={self.enclave_name}",
            self.network_name,
        )
        if exit_code != 0:
            raise LaunchError(f"failed to create Docker network {self.network_name}: {output}")
        LOG.info(f"Created enclave {self.enclave_name} on network {self.network_name}")

    async def launch(self, service_id: str, supplier: LaunchSpecSupplier) -> ServiceHandle:
        if service_id in self._containers:
            raise LaunchError(f"service {service_id} is already running")

        private_ip = self._alloc_ip()
        shared_dir = SharedPath(
            local_path=os.path.join(self.run_dir, service_id),
            service_path=SHARED_DIR_MOUNTPOINT,
        )
        try:
            os.makedirs(shared_dir.local_path)
        except OSError as err:
            raise StagingError(
                f"failed to create shared directory {shared_dir.local_path} for {service_id}: {err}"
            ) from err

        spec = supplier(private_ip, shared_dir)

        container_name = f"{self.enclave_name}--{service_id}"
        cmd = [
            'run', '--detach',
            '--name', container_name,
            '--network', self.network_name,
            '--ip', private_ip,
            '--label', f"{ENCLAVE_LABEL}={self.enclave_name}",
            '--volume', f"{shared_dir.local_path}:{SHARED_DIR_MOUNTPOINT}",
        ]
        if spec.entrypoint is not None:
            cmd.extend(['--entrypoint', spec.entrypoint])
        cmd.append(spec.image)
        cmd.extend(spec.cmd)

        try:
            exit_code, output = await self._docker(*cmd)
        except ExecError as err:
            raise LaunchError(f"failed to launch service {service_id}: {err}") from err
        if exit_code != 0:
            raise LaunchError(
                f"failed to launch {spec.role.value} service {service_id} from image {spec.image}"
                f" with exit code {exit_code}: {output}"
            )
        self._containers[service_id] = container_name
        LOG.info(f"Launched service {service_id} at {private_ip} from image {spec.image}")
        return ServiceHandle(
            service_id=service_id,
            private_ip=private_ip,
            ports=dict(spec.ports),
            shared_dir=shared_dir,
        )

    async def execute_command(self, handle: ServiceHandle, argv: List[str]) -> Tuple[int, str]:
        try:
            container_name = self._containers[handle.service_id]
        except KeyError:
            raise ExecError(f"service {handle.service_id} is not running in this enclave")
        return await self._docker('exec', container_name, *argv)

    async def destroy(self) -> None:
        """
        Remove all containers of this enclave and its network.

        Services do not have to have been launched by this runtime object.
        """
        exit_code, output = await self._docker(
            'ps', '--all', '--quiet', '--filter', f"label={ENCLAVE_LABEL}={self.enclave_name}",
        )
        if exit_code != 0:
            raise LaunchError(f"failed to list containers of enclave {self.enclave_name}: {output}")
        container_ids = output.split()
        if container_ids:
            exit_code, output = await self._docker('rm', '--force', *container_ids)
            if exit_code != 0:
                raise LaunchError(f"failed to remove containers {container_ids}: {output}")

        exit_code, output = await self._docker('network', 'rm', self.network_name)
        if exit_code != 0:
            LOG.warning(f"Could not remove Docker network {self.network_name}: {output.strip()}")
        self._containers.clear()
        LOG.info(f"Destroyed enclave {self.enclave_name}")

    def _alloc_ip(self) -> str:
        try:
            return str(next(self._hosts))
        except StopIteration:
            raise LaunchError(f"no private IP addresses left in subnet {self.subnet}")

    @staticmethod
    async def _docker(*args: str) -> Tuple[int, str]:
        try:
            return await run_command(['docker', *args])
        except OSError as err:
            raise ExecError(f"failed to run docker {args[0]}: {err}") from err
