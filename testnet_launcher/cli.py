"""
Command line interface specification.
"""

import argparse
from enum import Enum
import logging

DEFAULT_ENCLAVE_NAME = 'cl-testnet'
DEFAULT_ENCLAVE_DIR = './enclave'


class Subcommand(Enum):
    LAUNCH = 'launch'
    DESTROY = 'destroy'


def parse_cli_args():
    parser = argparse.ArgumentParser(description='Launch a consensus layer client test network')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Log level of the launcher itself')
    parser.add_argument('--log-file',
                        help='Also write launcher logs to this file')
    subparsers = parser.add_subparsers(
        dest='subcommand_name',
        required=True,
    )
    launch_parser = subparsers.add_parser(
        Subcommand.LAUNCH.value,
        help='generate genesis data and launch all configured participants',
    )
    destroy_parser = subparsers.add_parser(
        Subcommand.DESTROY.value,
        help='remove all services of a previously launched network',
    )

    for subparser in (launch_parser, destroy_parser):
        subparser.add_argument('--enclave-name', default=DEFAULT_ENCLAVE_NAME,
                               help='Name of the Docker network and container prefix')

    launch_parser.add_argument('--config-path', required=True,
                               help='Path to the YAML network configuration file')
    launch_parser.add_argument('--enclave-dir', default=DEFAULT_ENCLAVE_DIR,
                               help='Host directory holding the services\' shared directories')
    launch_parser.add_argument('--jwt-secret-path',
                               help='Path to the EL/CL JWT secret, generated if not given')

    args = parser.parse_args()
    args.log_level = getattr(logging, args.log_level)
    return args
