import asyncio
import functools
import logging
import os.path
import signal
import sys
from typing import List, Optional

import yaml

from .cli import Subcommand, parse_cli_args
from .config import read_config
from .exceptions import LauncherError
from .genesis import write_jwt_secret
from .network import ParticipantNetwork, create_client_families, launch_participant_network
from .runtime import DockerRuntime

LOG = logging.getLogger(__name__)

JWT_SECRET_FILENAME = 'jwtsecret'


def _network_summary(network: ParticipantNetwork) -> dict:
    return {
        'genesis_dir': network.genesis.output_dir,
        'participants': [
            {
                'enr': context.enr,
                'peer_id': context.identity.peer_id,
                'ip_address': context.ip_address,
                'http_port': context.http_port,
                'metrics': [
                    {'name': info.name, 'url': info.url, 'path': info.path}
                    for info in context.metrics
                ],
            }
            for context in network.contexts
        ],
    }


async def run_launch(args) -> None:
    config = read_config(args.config_path)
    # Reject misconfigured participants before the enclave is touched.
    create_client_families(config)
    exit_event = asyncio.Event()

    runtime = DockerRuntime(args.enclave_name, args.enclave_dir)
    await runtime.create()

    jwt_secret_path = args.jwt_secret_path
    if jwt_secret_path is None:
        jwt_secret_path = os.path.join(runtime.run_dir, JWT_SECRET_FILENAME)
        write_jwt_secret(jwt_secret_path)
        LOG.info(f"Generated JWT secret at {jwt_secret_path}")

    def exit_handler(signame: str):
        LOG.debug(f"Handling signal {signame}")
        exit_event.set()

    loop = asyncio.get_event_loop()
    loop.add_signal_handler(signal.SIGINT, functools.partial(exit_handler, 'SIGINT'))
    loop.add_signal_handler(signal.SIGTERM, functools.partial(exit_handler, 'SIGTERM'))

    network = await launch_participant_network(runtime, config, jwt_secret_path, exit_event)
    yaml.dump(_network_summary(network), sys.stdout, default_flow_style=False, sort_keys=False)


async def run_destroy(args) -> None:
    runtime = DockerRuntime(args.enclave_name, enclave_dir='.')
    await runtime.destroy()


def configure_logging(log_level: int = logging.DEBUG, log_path: Optional[str] = None) -> None:
    formatter = logging.Formatter('%(levelname)-8s %(name)-15s %(message)s')
    # stdout is reserved for the launch result.
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    handlers: List[logging.Handler] = [stderr_handler]
    if log_path is not None:
        logfile_handler = logging.FileHandler(log_path)
        logfile_handler.setFormatter(formatter)
        handlers.append(logfile_handler)

    logging.basicConfig(
        handlers=handlers,
        level=log_level,
    )


def main() -> None:
    args = parse_cli_args()
    configure_logging(args.log_level, args.log_file)

    try:
        if args.subcommand_name == Subcommand.LAUNCH.value:
            asyncio.run(run_launch(args))

        if args.subcommand_name == Subcommand.DESTROY.value:
            asyncio.run(run_destroy(args))
    except LauncherError as err:
        LOG.error(f"{type(err).__name__}: {err}")
        sys.exit(1)


if __name__ == '__main__':
    main()
