"""
Connection Configuration

Immutable settings for an EPP stream connection, plus YAML loading.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from epp_stream.exceptions import EPPConfigurationError

# IANA-assigned EPP port
DEFAULT_PORT = 700

DEFAULT_TIMEOUT = 30

# Default config locations
DEFAULT_CONFIG_PATHS = [
    Path.home() / ".epp" / "config.yaml",
    Path.home() / ".epp" / "config.yml",
    Path("/etc/epp/config.yaml"),
    Path("epp_config.yaml"),
]


@dataclass(frozen=True)
class ConnectionConfig:
    """
    EPP connection settings.

    Attributes:
        uri: Server URI, e.g. ``tls://epp.example.test:700``
        timeout: Seconds allowed for connect and for each frame read
        transport_options: Options passed verbatim to the transport
            (client certificate paths, CA bundle, verification flags)
    """
    uri: str
    timeout: int = DEFAULT_TIMEOUT
    transport_options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.uri, str) or not self.uri:
            raise EPPConfigurationError("uri must be a non-empty string")

        # bool is an int subclass but never a valid timeout
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, int):
            raise EPPConfigurationError(
                f"timeout must be an integer, got {type(self.timeout).__name__}"
            )
        if self.timeout <= 0:
            raise EPPConfigurationError(f"timeout must be positive, got {self.timeout}")

        if self.transport_options is None:
            object.__setattr__(self, "transport_options", {})
        elif not isinstance(self.transport_options, Mapping):
            raise EPPConfigurationError(
                f"transport_options must be a mapping, got {type(self.transport_options).__name__}"
            )

    @classmethod
    def coerce(cls, value: Any) -> "ConnectionConfig":
        """
        Accept a ConnectionConfig or a dict of its fields.

        Raises:
            EPPConfigurationError: If the value has neither shape
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            try:
                return cls(**value)
            except TypeError as e:
                raise EPPConfigurationError(f"Invalid configuration parameters: {e}") from e
        raise EPPConfigurationError(
            f"Expected ConnectionConfig or dict, got {type(value).__name__}"
        )

    @classmethod
    def from_dict(cls, data: dict, profile: str = "default") -> "ConnectionConfig":
        """
        Create config from dictionary.

        Args:
            data: Configuration dictionary
            profile: Profile name to use

        Returns:
            ConnectionConfig instance
        """
        # Get profile-specific config or use root
        if "profiles" in data and profile in data["profiles"]:
            profile_data = data["profiles"][profile]
        else:
            profile_data = data

        server_data = profile_data.get("server") or {}
        uri = server_data.get("uri")
        if not uri:
            host = server_data.get("host")
            if not host:
                raise EPPConfigurationError("Server uri or host is required in configuration")
            scheme = server_data.get("scheme", "tls")
            port = server_data.get("port", DEFAULT_PORT)
            uri = f"{scheme}://{host}:{port}"

        tls: Dict[str, Any] = {}
        certs_data = profile_data.get("certs") or {}
        for key in ("cert_file", "key_file", "ca_file"):
            path = _expand_path(certs_data.get(key))
            if path:
                tls[key] = path
        if "verify_server" in server_data:
            tls["verify_server"] = bool(server_data["verify_server"])

        options: Dict[str, Any] = dict(profile_data.get("transport_options") or {})
        if tls:
            options["tls"] = {**tls, **(options.get("tls") or {})}

        return cls(
            uri=uri,
            timeout=server_data.get("timeout", DEFAULT_TIMEOUT),
            transport_options=options,
        )

    @classmethod
    def from_file(cls, path: Path, profile: str = "default") -> "ConnectionConfig":
        """
        Load config from YAML file.

        Args:
            path: Path to config file
            profile: Profile name to use

        Returns:
            ConnectionConfig instance
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise EPPConfigurationError(f"Can not load config file {path}: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise EPPConfigurationError(f"Config file {path} must contain a mapping")

        return cls.from_dict(data or {}, profile)

    @classmethod
    def find_and_load(cls, profile: str = "default") -> Optional["ConnectionConfig"]:
        """
        Find and load config from default locations.

        Args:
            profile: Profile name to use

        Returns:
            ConnectionConfig instance or None if not found
        """
        for path in DEFAULT_CONFIG_PATHS:
            if path.exists():
                return cls.from_file(path, profile)
        return None


def _expand_path(path: Optional[str]) -> Optional[str]:
    """Expand environment variables and ~ in path."""
    if path is None:
        return None
    return os.path.expandvars(os.path.expanduser(path))


def create_sample_config() -> str:
    """
    Generate sample configuration YAML.

    Returns:
        Sample config as YAML string
    """
    return """# EPP Stream Configuration
# Copy to ~/.epp/config.yaml

# Default profile
server:
  uri: tls://epp.example.test:700
  timeout: 30
  verify_server: true

certs:
  cert_file: ~/.epp/client.crt
  key_file: ~/.epp/client.key
  ca_file: ~/.epp/ca.crt

# Multiple profiles example
profiles:
  production:
    server:
      host: epp.example.test
      port: 700
    certs:
      cert_file: ~/.epp/prod/client.crt
      key_file: ~/.epp/prod/client.key
      ca_file: ~/.epp/prod/ca.crt

  ote:
    server:
      host: epp-ote.example.test
      port: 700
      timeout: 60
    certs:
      cert_file: ~/.epp/ote/client.crt
      key_file: ~/.epp/ote/client.key
      ca_file: ~/.epp/ote/ca.crt
"""
