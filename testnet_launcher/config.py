"""
Configuration data structures and serialization/deserialization code.
"""

from dataclasses import dataclass, field
import marshmallow
from marshmallow import fields, post_load, validate
import re
from typing import List
import yaml

from .beacon_api import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_INTERVAL
from .clients import DEFAULT_PRYSM_PASSWORD, KeystoreDirs, get_client_family_names
from .exceptions import ConfigurationError
from .genesis import DEFAULT_DEPOSIT_CONTRACT_ADDRESS, GenesisConfig
from .launch_spec import LogLevel

CONFIG_VERSION = 1
DEFAULT_GENESIS_DELAY = 120
DEFAULT_NUM_VALIDATOR_KEYS_PER_NODE = 64
DEFAULT_GENESIS_GENERATOR_IMAGE = 'skylenet/ethereum-genesis-generator:latest'
DEFAULT_MNEMONIC = 'giant issue aisle success illegal bike spike question tent bar rely arctic ' \
    'volcano long crawl hungry vocal artwork sniff fantasy very lucky have athlete'


def validate_ethereum_address(value: str):
    # Does not validate checksum because I don't want to pull in a dependency for that
    if not re.fullmatch(r"0x[0-9a-fA-F]{40}", value):
        raise marshmallow.exceptions.ValidationError("Value must be an Ethereum address")


@dataclass
class HealthCheckConfig:
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_interval: float = DEFAULT_RETRY_INTERVAL


@dataclass
class ParticipantConfig:
    """
    One beacon node and validator client pair.
    """
    cl_client: str
    cl_images: str
    "image reference, or '<beacon-image>,<validator-image>' for clients with two images"

    el_rpc_url: str
    keystore: KeystoreDirs
    log_level: str = ''
    "client-specific log level overriding the global one"

    beacon_extra_params: List[str] = field(default_factory=list)
    validator_extra_params: List[str] = field(default_factory=list)


@dataclass
class NetworkConfig:
    """
    Test network configuration data.
    """
    network_id: str
    participants: List[ParticipantConfig]
    seconds_per_slot: int = 12
    genesis_delay: int = DEFAULT_GENESIS_DELAY
    total_terminal_difficulty: int = 0
    altair_fork_epoch: int = 0
    merge_fork_epoch: int = 0
    deposit_contract_address: str = DEFAULT_DEPOSIT_CONTRACT_ADDRESS
    mnemonic: str = DEFAULT_MNEMONIC
    num_validator_keys_per_node: int = DEFAULT_NUM_VALIDATOR_KEYS_PER_NODE
    log_level: LogLevel = LogLevel.INFO
    genesis_generator_image: str = DEFAULT_GENESIS_GENERATOR_IMAGE
    prysm_password: str = DEFAULT_PRYSM_PASSWORD
    health_check: HealthCheckConfig = field(default_factory=HealthCheckConfig)

    def genesis_config(self, now: int) -> GenesisConfig:
        """
        Genesis parameters for a network launched at the given time.

        :param now: current unix timestamp
        """
        num_keys = self.num_validator_keys_per_node * len(self.participants)
        return GenesisConfig(
            network_id=self.network_id,
            seconds_per_slot=self.seconds_per_slot,
            genesis_unix_timestamp=now + self.genesis_delay,
            total_terminal_difficulty=self.total_terminal_difficulty,
            altair_fork_epoch=self.altair_fork_epoch,
            merge_fork_epoch=self.merge_fork_epoch,
            deposit_contract_address=self.deposit_contract_address,
            preregistered_validator_keys_mnemonic=self.mnemonic,
            num_validator_keys_to_preregister=num_keys,
        )


class HealthCheckConfigSchema(marshmallow.Schema):
    """
    Serialization schema for HealthCheckConfig.
    """
    max_retries = fields.Int(load_default=DEFAULT_MAX_RETRIES, validate=validate.Range(min=1))
    retry_interval = fields.Float(load_default=DEFAULT_RETRY_INTERVAL,
                                  validate=validate.Range(min=0))

    @post_load
    def build(self, data, **_kwargs) -> HealthCheckConfig:
        return HealthCheckConfig(**data)


class KeystoreDirsSchema(marshmallow.Schema):
    """
    Serialization schema for KeystoreDirs.
    """
    raw_keys_dir = fields.Str(required=True)
    raw_secrets_dir = fields.Str(required=True)
    prysm_dir = fields.Str(required=True)

    @post_load
    def build(self, data, **_kwargs) -> KeystoreDirs:
        return KeystoreDirs(**data)


class ParticipantConfigSchema(marshmallow.Schema):
    """
    Serialization schema for ParticipantConfig.
    """
    cl_client = fields.Str(required=True, validate=validate.OneOf(get_client_family_names()))
    cl_images = fields.Str(required=True)
    el_rpc_url = fields.Url(required=True, require_tld=False)
    keystore = fields.Nested(KeystoreDirsSchema, required=True)
    log_level = fields.Str(load_default='')
    beacon_extra_params = fields.List(fields.Str(), load_default=list)
    validator_extra_params = fields.List(fields.Str(), load_default=list)

    @post_load
    def build(self, data, **_kwargs) -> ParticipantConfig:
        return ParticipantConfig(**data)


class NetworkConfigSchema(marshmallow.Schema):
    """
    Serialization schema for NetworkConfig.
    """
    network_id = fields.Str(required=True)
    participants = fields.List(
        fields.Nested(ParticipantConfigSchema),
        required=True,
        validate=validate.Length(min=1),
    )
    seconds_per_slot = fields.Int(load_default=12, validate=validate.Range(min=1))
    genesis_delay = fields.Int(load_default=DEFAULT_GENESIS_DELAY, validate=validate.Range(min=0))
    total_terminal_difficulty = fields.Int(load_default=0, validate=validate.Range(min=0))
    altair_fork_epoch = fields.Int(load_default=0, validate=validate.Range(min=0))
    merge_fork_epoch = fields.Int(load_default=0, validate=validate.Range(min=0))
    deposit_contract_address = fields.Str(load_default=DEFAULT_DEPOSIT_CONTRACT_ADDRESS,
                                          validate=validate_ethereum_address)
    mnemonic = fields.Str(load_default=DEFAULT_MNEMONIC)
    num_validator_keys_per_node = fields.Int(load_default=DEFAULT_NUM_VALIDATOR_KEYS_PER_NODE,
                                             validate=validate.Range(min=1))
    log_level = fields.Enum(LogLevel, by_value=True, load_default=LogLevel.INFO)
    genesis_generator_image = fields.Str(load_default=DEFAULT_GENESIS_GENERATOR_IMAGE)
    prysm_password = fields.Str(load_default=DEFAULT_PRYSM_PASSWORD)
    health_check = fields.Nested(HealthCheckConfigSchema, load_default=HealthCheckConfig)

    @post_load
    def build(self, data, **_kwargs) -> NetworkConfig:
        return NetworkConfig(**data)


def load_config(config_dict: dict) -> NetworkConfig:
    """
    Deserialize a configuration struct from a dictionary.

    :raise ConfigurationError: if the configuration is invalid
    """
    if not isinstance(config_dict, dict):
        raise ConfigurationError("config must be a mapping")
    config_dict = dict(config_dict)
    version = config_dict.pop('version', CONFIG_VERSION)
    if version == 1:
        try:
            return NetworkConfigSchema().load(config_dict)
        except marshmallow.exceptions.ValidationError as err:
            raise ConfigurationError(err.messages) from err
    else:
        raise ConfigurationError(f"unsupported config version {version}")


def read_config(config_path: str) -> NetworkConfig:
    """
    Read and deserialize configuration struct from a YAML file.

    :param config_path: path to YAML file
    :return: config struct
    """
    try:
        with open(config_path, 'rb') as f:
            config_dict = yaml.load(f, Loader=yaml.Loader)
    except FileNotFoundError:
        raise ConfigurationError(f"config file not found at {config_path}")
    except yaml.YAMLError:
        raise ConfigurationError("config file is not valid YAML")

    return load_config(config_dict)

