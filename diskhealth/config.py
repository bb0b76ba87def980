# -----------------------------------------------------------------------------
# Copyright (c) 2025 Disk Health Collector contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

import logging
import os
import socket
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

WILDCARD = "*"


class ConfigurationError(Exception):
    """Raised when settings are invalid; fatal at startup."""


class FileConfig(BaseSettings):
    # Devices and cadence
    disks: Optional[str] = "/dev/sda,/dev/sdb"
    interval: Optional[int] = 10

    # Outputs
    nats_url: Optional[str] = None
    nats_subject: Optional[str] = "osd.disk.health"
    nats_timeout: Optional[int] = 5
    prometheus: Optional[bool] = False
    prometheus_port: Optional[int] = 8080

    # Identity
    node_name: Optional[str] = None
    instance_id: Optional[str] = None

    # Thresholds
    grown_defects_threshold: Optional[int] = 10
    pending_sectors_threshold: Optional[int] = 3
    reallocated_sectors_threshold: Optional[int] = 10
    lifetime_used_threshold: Optional[int] = 80

    # Storage unit mapping
    ceph_osd_base_path: Optional[str] = None

    # Fixture replay
    test_mode: Optional[bool] = False
    test_data_dir: Optional[str] = "testdata"
    test_scenario: Optional[str] = "healthy"
    test_devices: Optional[str] = None

    command_timeout: Optional[int] = 30
    max_iterations: Optional[int] = 0

    class Config:
        arbitrary_types_allowed = True
        extra = 'ignore'


class EnvConfig(BaseSettings):
    DISKS: str = Field(default="/dev/sda,/dev/sdb")
    INTERVAL: int = Field(default=10)

    NATS_URL: Optional[str] = Field(default=None)
    NATS_SUBJECT: str = Field(default="osd.disk.health")
    NATS_TIMEOUT: int = Field(default=5)
    PROMETHEUS: bool = Field(default=False)
    PROMETHEUS_PORT: int = Field(default=8080)

    NODE_NAME: Optional[str] = Field(default=None)
    INSTANCE_ID: Optional[str] = Field(default=None)

    GROWN_DEFECTS_THRESHOLD: int = Field(default=10)
    PENDING_SECTORS_THRESHOLD: int = Field(default=3)
    REALLOCATED_SECTORS_THRESHOLD: int = Field(default=10)
    LIFETIME_USED_THRESHOLD: int = Field(default=80)

    CEPH_OSD_BASE_PATH: Optional[str] = Field(default=None)

    TEST_MODE: bool = Field(default=False)
    TEST_DATA_DIR: str = Field(default="testdata")
    TEST_SCENARIO: str = Field(default="healthy")
    # comma separated, kept as str so pydantic-settings does not expect JSON
    TEST_DEVICES: Optional[str] = Field(default=None)

    COMMAND_TIMEOUT: int = Field(default=30)
    MAX_ITERATIONS: int = Field(default=0)

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = 'ignore'  # Ignore extra fields in .env that aren't defined in the model


class Settings:
    def __init__(self, config_file: Optional[str] = None, from_env: bool = False):
        self.from_env = from_env

        if from_env:
            logger.debug("Loading configuration from environment variables")
            load_dotenv()
            env = EnvConfig()

            self.disks = split_list(env.DISKS)
            self.interval = env.INTERVAL
            self.nats_url = env.NATS_URL or ""
            self.nats_subject = env.NATS_SUBJECT
            self.nats_timeout = env.NATS_TIMEOUT
            self.prometheus = env.PROMETHEUS
            self.prometheus_port = env.PROMETHEUS_PORT
            self.node_name = env.NODE_NAME or ""
            self.instance_id = env.INSTANCE_ID or ""
            self.grown_defects_threshold = env.GROWN_DEFECTS_THRESHOLD
            self.pending_sectors_threshold = env.PENDING_SECTORS_THRESHOLD
            self.reallocated_sectors_threshold = env.REALLOCATED_SECTORS_THRESHOLD
            self.lifetime_used_threshold = env.LIFETIME_USED_THRESHOLD
            self.ceph_osd_base_path = env.CEPH_OSD_BASE_PATH or ""
            self.test_mode = env.TEST_MODE
            self.test_data_dir = env.TEST_DATA_DIR
            self.test_scenario = env.TEST_SCENARIO
            self.test_devices = split_list(env.TEST_DEVICES)
            self.command_timeout = env.COMMAND_TIMEOUT
            self.max_iterations = env.MAX_ITERATIONS

        else:
            # Load from YAML file
            logger.debug(f"Loading configuration from file: {config_file}")
            data = {}
            if config_file and os.path.exists(config_file):
                with open(config_file, 'r') as f:
                    data = yaml.safe_load(f) or {}
            elif config_file:
                raise ConfigurationError(f"Config file not found: {config_file}")
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {config_file} must contain a mapping")

            known = {key: value for key, value in data.items() if key in FileConfig.model_fields}
            for key in ('disks', 'test_devices'):
                if isinstance(known.get(key), list):
                    known[key] = ",".join(str(item) for item in known[key])
            for key in sorted(set(data) - set(known)):
                logger.warning(f"Ignoring unknown config key '{key}' in {config_file}")
            try:
                file_config = FileConfig(**known)
            except ValueError as e:
                raise ConfigurationError(f"Invalid config file {config_file}: {e}")

            self.disks = split_list(file_config.disks)
            self.interval = file_config.interval
            self.nats_url = file_config.nats_url or ""
            self.nats_subject = file_config.nats_subject
            self.nats_timeout = file_config.nats_timeout
            self.prometheus = bool(file_config.prometheus)
            self.prometheus_port = file_config.prometheus_port
            self.node_name = file_config.node_name or ""
            self.instance_id = file_config.instance_id or ""
            self.grown_defects_threshold = file_config.grown_defects_threshold
            self.pending_sectors_threshold = file_config.pending_sectors_threshold
            self.reallocated_sectors_threshold = file_config.reallocated_sectors_threshold
            self.lifetime_used_threshold = file_config.lifetime_used_threshold
            self.ceph_osd_base_path = file_config.ceph_osd_base_path or ""
            self.test_mode = bool(file_config.test_mode)
            self.test_data_dir = file_config.test_data_dir
            self.test_scenario = file_config.test_scenario
            self.test_devices = split_list(file_config.test_devices)
            self.command_timeout = file_config.command_timeout
            self.max_iterations = file_config.max_iterations

        if not self.node_name:
            self.node_name = socket.gethostname()

    @property
    def wildcard(self) -> bool:
        return self.disks == [WILDCARD]

    def validate(self) -> None:
        """
        Check ranges of numeric settings.

        Raises:
            ConfigurationError: on the first invalid value
        """
        if self.interval is None or self.interval < 1:
            raise ConfigurationError(f"interval must be at least 1 second, got {self.interval}")
        for name in ('grown_defects_threshold', 'pending_sectors_threshold', 'reallocated_sectors_threshold'):
            value = getattr(self, name)
            if value is None or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative integer, got {value}")
        if self.lifetime_used_threshold is None or not 0 <= self.lifetime_used_threshold <= 100:
            raise ConfigurationError(
                f"lifetime_used_threshold must be a percentage between 0 and 100, got {self.lifetime_used_threshold}")
        if self.prometheus and not 0 < (self.prometheus_port or 0) < 65536:
            raise ConfigurationError(f"prometheus_port must be a valid TCP port, got {self.prometheus_port}")
        if self.command_timeout is None or self.command_timeout < 1:
            raise ConfigurationError(f"command_timeout must be at least 1 second, got {self.command_timeout}")
        if self.nats_timeout is None or self.nats_timeout < 1:
            raise ConfigurationError(f"nats_timeout must be at least 1 second, got {self.nats_timeout}")
        if self.max_iterations is None or self.max_iterations < 0:
            raise ConfigurationError(f"max_iterations must be a non-negative integer, got {self.max_iterations}")
        if not self.disks and not (self.test_mode and self.test_devices):
            raise ConfigurationError("No disks configured")


def split_list(value: Optional[str]) -> List[str]:
    """Split a comma separated setting into a list, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in str(value).split(',') if item.strip()]
