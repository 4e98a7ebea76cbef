"""
eFrontPro SDK - Configuration Management

Handles request handler configuration from environment variables and files.
"""

import os
from dataclasses import dataclass, fields
from typing import Optional
import yaml
import json

from efrontpro.core.errors import ConfigurationError

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(value: str) -> bool:
    return value.strip().lower() in _TRUTHY


def _read_mapping(path: str) -> dict:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        if path.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        elif path.endswith(".json"):
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {path}")

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")

    unknown = set(data) - {f.name for f in fields(HandlerConfig)}
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    return data


@dataclass
class HandlerConfig:
    """Request handler configuration."""

    sdk_version: str = "2.0.0"  # Sent in the eFrontPro-SDK-Version header

    # Transport settings
    connect_timeout: float = 30.0  # Seconds
    timeout: float = 60.0  # Seconds, whole request
    verify_peer: bool = False  # TLS peer certificate verification

    @classmethod
    def from_env(cls) -> "HandlerConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - EFRONTPRO_SDK_VERSION: SDK version reported to the API
        - EFRONTPRO_CONNECT_TIMEOUT: Connect timeout (seconds)
        - EFRONTPRO_TIMEOUT: Total request timeout (seconds)
        - EFRONTPRO_VERIFY_PEER: Verify TLS peer certificates (1/true/yes/on)
        """
        verify_peer = os.environ.get("EFRONTPRO_VERIFY_PEER")
        return cls(
            sdk_version=os.environ.get("EFRONTPRO_SDK_VERSION", cls.sdk_version),
            connect_timeout=float(
                os.environ.get("EFRONTPRO_CONNECT_TIMEOUT", cls.connect_timeout)
            ),
            timeout=float(os.environ.get("EFRONTPRO_TIMEOUT", cls.timeout)),
            verify_peer=_env_flag(verify_peer) if verify_peer is not None else cls.verify_peer,
        )

    @classmethod
    def from_file(cls, path: str) -> "HandlerConfig":
        """
        Load configuration from YAML or JSON file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .json)

        Returns:
            HandlerConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file format is invalid
        """
        return cls(**_read_mapping(path))

    @classmethod
    def load(cls, config_file: Optional[str] = None) -> "HandlerConfig":
        """
        Load configuration with priority: file > env > defaults.

        Args:
            config_file: Optional path to configuration file

        Returns:
            HandlerConfig instance
        """
        config = cls.from_env()

        # Only keys present in the file override env values
        if config_file and os.path.exists(config_file):
            for key, value in _read_mapping(config_file).items():
                setattr(config, key, value)

        return config

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.sdk_version:
            raise ConfigurationError("sdk_version is required")

        if self.connect_timeout <= 0:
            raise ConfigurationError("connect_timeout must be positive")

        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")

        if self.timeout < self.connect_timeout:
            raise ConfigurationError("timeout must not be shorter than connect_timeout")
