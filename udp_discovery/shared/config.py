"""
Configuration Management

Provides configuration classes and environment-based configuration loading.
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import yaml

from .constants import (
    ANNOUNCEMENT_MODES,
    BROADCAST_ADDRESS,
    DEFAULT_ANNOUNCE_COUNT,
    DEFAULT_ANNOUNCE_INTERVAL,
    DEFAULT_BIND_ADDRESS,
    DEFAULT_BUFFER_SIZE,
    DEFAULT_DISCOVERY_PORT,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_EXCLUDED_INTERFACE_PREFIXES,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SEND_TIMEOUT,
    DISCOVERY_TOKEN,
    MAX_PORT,
    MIN_PORT,
    MODE_LIMITED,
    MODE_ON_REQUEST,
    MODE_PERIODIC,
    TRIGGER_MATCH_EXACT,
    TRIGGER_MATCH_MODES,
)
from .exceptions import ConfigurationError
from .models import AnnouncementMode, Limited, OnRequest, Periodic
from .utils import is_valid_ipv4


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_prefixes(value: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _read_env(mapping: Dict[str, Tuple[str, Callable[[str], Any]]]) -> Dict[str, Any]:
    """
    Read the environment variables that are actually set.

    Args:
        mapping: Field name to (variable name, converter).

    Returns:
        Field name to converted value for every variable present.

    Raises:
        ConfigurationError: If a value cannot be converted.
    """
    values: Dict[str, Any] = {}
    for field_name, (env_name, convert) in mapping.items():
        raw = os.getenv(env_name)
        if raw is None:
            continue
        try:
            values[field_name] = convert(raw)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {env_name}: {e}")
    return values


def _is_port(value: Any, allow_zero: bool = False) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    low = MIN_PORT if allow_zero else MIN_PORT + 1
    return low <= value <= MAX_PORT


def _is_positive_number(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and value > 0


@dataclass
class ServiceConfig:
    """Settings for a service that announces itself or answers requests."""

    service_name: str = ""
    service_port: int = 0
    shared_key: str = ""
    discovery_port: int = DEFAULT_DISCOVERY_PORT
    broadcast_address: str = BROADCAST_ADDRESS
    mode: str = MODE_PERIODIC
    interval_seconds: float = DEFAULT_ANNOUNCE_INTERVAL
    max_count: int = DEFAULT_ANNOUNCE_COUNT
    advertise_ip: Optional[str] = None
    excluded_interface_prefixes: Tuple[str, ...] = field(
        default_factory=lambda: tuple(DEFAULT_EXCLUDED_INTERFACE_PREFIXES)
    )
    send_timeout: float = DEFAULT_SEND_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    bind_address: str = DEFAULT_BIND_ADDRESS
    buffer_size: int = DEFAULT_BUFFER_SIZE
    trigger_token: str = DISCOVERY_TOKEN
    trigger_match: str = TRIGGER_MATCH_EXACT

    ENV_VARS = {
        "service_name": ("DISCOVERY_SERVICE_NAME", str),
        "service_port": ("DISCOVERY_SERVICE_PORT", int),
        "shared_key": ("DISCOVERY_SHARED_KEY", str),
        "discovery_port": ("DISCOVERY_PORT", int),
        "broadcast_address": ("DISCOVERY_BROADCAST_ADDRESS", str),
        "mode": ("DISCOVERY_MODE", str),
        "interval_seconds": ("DISCOVERY_INTERVAL", float),
        "max_count": ("DISCOVERY_MAX_COUNT", int),
        "advertise_ip": ("DISCOVERY_ADVERTISE_IP", str),
        "excluded_interface_prefixes": ("DISCOVERY_EXCLUDED_INTERFACES", _parse_prefixes),
        "send_timeout": ("DISCOVERY_SEND_TIMEOUT", float),
        "poll_interval": ("DISCOVERY_POLL_INTERVAL", float),
        "trigger_match": ("DISCOVERY_TRIGGER_MATCH", str),
    }

    def validate(self) -> None:
        """Validate configuration values."""
        errors: List[str] = []

        if not isinstance(self.service_name, str) or not self.service_name.strip():
            errors.append("service_name must be a non-empty string")

        if not _is_port(self.service_port, allow_zero=True):
            errors.append(f"service_port must be an integer between {MIN_PORT} and {MAX_PORT}")

        if not isinstance(self.shared_key, str) or not self.shared_key:
            errors.append("shared_key must be a non-empty string")

        if not _is_port(self.discovery_port, allow_zero=True):
            errors.append(f"discovery_port must be an integer between {MIN_PORT} and {MAX_PORT}")

        if not isinstance(self.broadcast_address, str) or not self.broadcast_address.strip():
            errors.append("broadcast_address must be a non-empty string")

        if self.mode not in ANNOUNCEMENT_MODES:
            errors.append(f"mode must be one of: {', '.join(ANNOUNCEMENT_MODES)}")

        if isinstance(self.interval_seconds, bool) or not isinstance(self.interval_seconds, (int, float)) \
                or self.interval_seconds < 0:
            errors.append("interval_seconds must be a non-negative number")

        if isinstance(self.max_count, bool) or not isinstance(self.max_count, int) or self.max_count < 1:
            errors.append("max_count must be a positive integer")

        if self.advertise_ip is not None and not is_valid_ipv4(self.advertise_ip):
            errors.append("advertise_ip must be a dotted-quad IPv4 address")

        if not _is_positive_number(self.send_timeout):
            errors.append("send_timeout must be a positive number")

        if not _is_positive_number(self.poll_interval):
            errors.append("poll_interval must be a positive number")

        if not isinstance(self.buffer_size, int) or self.buffer_size < 512:
            errors.append("buffer_size must be at least 512 bytes")

        if not isinstance(self.trigger_token, str) or not self.trigger_token.strip():
            errors.append("trigger_token must be a non-empty string")

        if self.trigger_match not in TRIGGER_MATCH_MODES:
            errors.append(f"trigger_match must be one of: {', '.join(TRIGGER_MATCH_MODES)}")

        if errors:
            raise ConfigurationError(f"Service configuration validation failed: {'; '.join(errors)}")

    def announcement_mode(self) -> AnnouncementMode:
        """
        Build the announcement mode described by this configuration.

        Returns:
            Periodic, Limited or OnRequest value.
        """
        if self.mode == MODE_PERIODIC:
            return Periodic(self.interval_seconds)
        if self.mode == MODE_LIMITED:
            return Limited(self.interval_seconds, self.max_count)
        if self.mode == MODE_ON_REQUEST:
            return OnRequest()
        raise ConfigurationError(f"Unknown announcement mode: {self.mode}")

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Load configuration from environment variables."""
        config = cls(**_read_env(cls.ENV_VARS))
        config.validate()
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceConfig":
        """Create configuration from dictionary."""
        try:
            # Filter only known fields
            field_names = {f.name for f in fields(cls)}
            filtered_data = {k: v for k, v in data.items() if k in field_names}
            if "excluded_interface_prefixes" in filtered_data:
                filtered_data["excluded_interface_prefixes"] = tuple(filtered_data["excluded_interface_prefixes"])
            config = cls(**filtered_data)
            config.validate()
            return config
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Failed to create service configuration from dictionary: {e}")


@dataclass
class ClientConfig:
    """Settings for discovery clients and passive listeners."""

    expected_key: str = ""
    discovery_port: int = DEFAULT_DISCOVERY_PORT
    broadcast_address: str = BROADCAST_ADDRESS
    timeout: float = DEFAULT_DISCOVERY_TIMEOUT
    bind_address: str = DEFAULT_BIND_ADDRESS
    request_token: str = DISCOVERY_TOKEN
    buffer_size: int = DEFAULT_BUFFER_SIZE
    poll_interval: float = DEFAULT_POLL_INTERVAL

    ENV_VARS = {
        "expected_key": ("DISCOVERY_SHARED_KEY", str),
        "discovery_port": ("DISCOVERY_PORT", int),
        "broadcast_address": ("DISCOVERY_BROADCAST_ADDRESS", str),
        "timeout": ("DISCOVERY_TIMEOUT", float),
        "bind_address": ("DISCOVERY_CLIENT_BIND_ADDRESS", str),
        "poll_interval": ("DISCOVERY_POLL_INTERVAL", float),
    }

    def validate(self) -> None:
        """Validate configuration values."""
        errors: List[str] = []

        if not isinstance(self.expected_key, str) or not self.expected_key:
            errors.append("expected_key must be a non-empty string")

        if not _is_port(self.discovery_port, allow_zero=True):
            errors.append(f"discovery_port must be an integer between {MIN_PORT} and {MAX_PORT}")

        if not isinstance(self.broadcast_address, str) or not self.broadcast_address.strip():
            errors.append("broadcast_address must be a non-empty string")

        if not _is_positive_number(self.timeout):
            errors.append("timeout must be a positive number")

        if not isinstance(self.request_token, str) or not self.request_token.strip():
            errors.append("request_token must be a non-empty string")

        if not isinstance(self.buffer_size, int) or self.buffer_size < 512:
            errors.append("buffer_size must be at least 512 bytes")

        if not _is_positive_number(self.poll_interval):
            errors.append("poll_interval must be a positive number")

        if errors:
            raise ConfigurationError(f"Client configuration validation failed: {'; '.join(errors)}")

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables."""
        config = cls(**_read_env(cls.ENV_VARS))
        config.validate()
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        """Create configuration from dictionary."""
        try:
            # Filter only known fields
            field_names = {f.name for f in fields(cls)}
            filtered_data = {k: v for k, v in data.items() if k in field_names}
            config = cls(**filtered_data)
            config.validate()
            return config
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Failed to create client configuration from dictionary: {e}")


class ConfigurationLoader:
    """Configuration loader with support for multiple sources."""

    DEFAULT_CONFIG_PATHS = [
        "discovery.json",
        ".discovery.json",
        "discovery.yaml",
        ".discovery.yaml",
        "discovery.yml",
        ".discovery.yml"
    ]

    @staticmethod
    def load_from_file(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
        """
        Load configuration from a JSON or YAML file.

        Args:
            config_path: Path to configuration file. If None, looks for default locations.

        Returns:
            Dictionary containing configuration values.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed.
        """
        if config_path is None:
            for path in ConfigurationLoader.DEFAULT_CONFIG_PATHS:
                if os.path.exists(path):
                    config_path = path
                    break

        if config_path is None:
            return {}

        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        if config_path.suffix not in ('.json', '.yml', '.yaml'):
            raise ConfigurationError(f"Unsupported configuration file format: {config_path.suffix}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if config_path.suffix == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f) or {}
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file {config_path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file {config_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to load configuration from {config_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
        return data

    @staticmethod
    def _merge(
        section: str,
        env_vars: Dict[str, Tuple[str, Callable[[str], Any]]],
        config_path: Optional[Union[str, Path]],
        use_env: bool,
        overrides: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        config_data: Dict[str, Any] = {}

        # File first, then environment, then explicit overrides
        file_config = ConfigurationLoader.load_from_file(config_path)
        section_data = file_config.get(section, {})
        if not isinstance(section_data, dict):
            raise ConfigurationError(f"Configuration section '{section}' must be a mapping")
        config_data.update(section_data)

        if use_env:
            config_data.update(_read_env(env_vars))

        if overrides:
            config_data.update({k: v for k, v in overrides.items() if v is not None})

        return config_data

    @staticmethod
    def load_service_config(
        config_path: Optional[Union[str, Path]] = None,
        use_env: bool = True,
        overrides: Optional[Dict[str, Any]] = None
    ) -> ServiceConfig:
        """
        Load service configuration from file and/or environment.

        Args:
            config_path: Path to configuration file.
            use_env: Whether to load from environment variables.
            overrides: Values taking precedence over file and environment (None values are skipped).

        Returns:
            ServiceConfig instance.
        """
        data = ConfigurationLoader._merge("service", ServiceConfig.ENV_VARS, config_path, use_env, overrides)
        return ServiceConfig.from_dict(data)

    @staticmethod
    def load_client_config(
        config_path: Optional[Union[str, Path]] = None,
        use_env: bool = True,
        overrides: Optional[Dict[str, Any]] = None
    ) -> ClientConfig:
        """
        Load client configuration from file and/or environment.

        Args:
            config_path: Path to configuration file.
            use_env: Whether to load from environment variables.
            overrides: Values taking precedence over file and environment (None values are skipped).

        Returns:
            ClientConfig instance.
        """
        data = ConfigurationLoader._merge("client", ClientConfig.ENV_VARS, config_path, use_env, overrides)
        return ClientConfig.from_dict(data)
