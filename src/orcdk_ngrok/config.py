"""Plugin configuration management.

Holds the host orchestrator's configuration contract (plugin options and
environment topology) and the plugin's own resolved NgrokConfig.

Precedence for plugin settings (highest to lowest):
1. Plugin options bag (``PluginConfig.config``)
2. ORCDK_NGROK_* environment variables
3. Defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

# Default values
DEFAULT_PORT = 3000
DEFAULT_ENABLED_STACKS = ("mcp-discord", "smaaash")
DEFAULT_ENVIRONMENT = "local"
DEFAULT_BINARY = "ngrok"
DEFAULT_API_URL = "http://localhost:4040"
DEFAULT_ENV_KEY = "MCP_EXTERNAL_URL"
DEFAULT_STARTUP_DELAY = 2.0
DEFAULT_STARTUP_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_REQUEST_TIMEOUT = 5.0

# Names the active deployment environment
ENVIRONMENT_VAR = "CDK_ENVIRONMENT"

# Environment variable mappings
ENV_VARS = {
    "port": "ORCDK_NGROK_PORT",
    "api_url": "ORCDK_NGROK_API_URL",
    "binary": "ORCDK_NGROK_BINARY",
}


@dataclass
class EnvironmentConfig:
    """One entry of the orchestrator's environment topology."""

    is_local: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnvironmentConfig:
        extra = {k: v for k, v in data.items() if k != "isLocal"}
        return cls(is_local=bool(data.get("isLocal", False)), extra=extra)


@dataclass
class OrcdkConfig:
    """Orchestrator configuration as seen by plugins."""

    environments: dict[str, EnvironmentConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OrcdkConfig:
        raw = data.get("environments") or {}
        if not isinstance(raw, dict):
            raise ConfigurationError("'environments' must be a mapping")
        return cls(
            environments={
                name: EnvironmentConfig.from_dict(env or {}) for name, env in raw.items()
            }
        )

    def is_local(self, environment: str) -> bool:
        """Whether the named environment exists and is marked local."""
        env = self.environments.get(environment)
        return env is not None and env.is_local


@dataclass
class PluginConfig:
    """Plugin entry from the orchestrator config."""

    name: str
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PluginConfig:
        return cls(
            name=str(data.get("name", "")),
            enabled=bool(data.get("enabled", True)),
            config=dict(data.get("config") or {}),
        )


@dataclass(frozen=True)
class NgrokConfig:
    """Resolved plugin settings. Immutable once loaded."""

    port: int = DEFAULT_PORT
    enabled_stacks: frozenset[str] = frozenset(DEFAULT_ENABLED_STACKS)
    env_file_path: Path = field(default_factory=lambda: get_env_file_path())
    binary: str = DEFAULT_BINARY
    api_url: str = DEFAULT_API_URL
    env_key: str = DEFAULT_ENV_KEY
    startup_delay: float = DEFAULT_STARTUP_DELAY
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def get_active_environment() -> str | None:
    """Get the active deployment environment name, if any."""
    return os.environ.get(ENVIRONMENT_VAR) or None


def get_env_file_path(cwd: Path | None = None) -> Path:
    """Get the environment file path for the active environment.

    Returns:
        Path to <cwd>/.env.<environment>, defaulting the environment to "local"
    """
    environment = get_active_environment() or DEFAULT_ENVIRONMENT
    return (cwd or Path.cwd()) / f".env.{environment}"


def _parse_port(value: Any) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid port: {value!r}")
    if not 1 <= port <= 65535:
        raise ConfigurationError(f"Port out of range: {port}")
    return port


def _parse_seconds(name: str, value: Any) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid {name}: {value!r}")
    if seconds < 0:
        raise ConfigurationError(f"{name} must not be negative: {seconds}")
    return seconds


def load_ngrok_config(options: dict[str, Any] | None = None, cwd: Path | None = None) -> NgrokConfig:
    """Resolve plugin settings from the options bag and the environment.

    Args:
        options: The plugin's options bag (PluginConfig.config)
        cwd: Directory the env file lives in (defaults to the working directory)

    Returns:
        NgrokConfig

    Raises:
        ConfigurationError: If a value cannot be used
    """
    options = options or {}

    port: Any = DEFAULT_PORT
    if os.environ.get(ENV_VARS["port"]):
        port = os.environ[ENV_VARS["port"]]
    if options.get("port") is not None:
        port = options["port"]

    stacks = options.get("enabledStacks")
    if stacks is None:
        stacks = DEFAULT_ENABLED_STACKS
    if not isinstance(stacks, (list, tuple, set, frozenset)) or not all(
        isinstance(s, str) for s in stacks
    ):
        raise ConfigurationError("'enabledStacks' must be a list of stack names")

    env_file = options.get("envFile")
    env_file_path = Path(env_file) if env_file else get_env_file_path(cwd)

    return NgrokConfig(
        port=_parse_port(port),
        enabled_stacks=frozenset(stacks),
        env_file_path=env_file_path,
        binary=str(options.get("binary") or os.environ.get(ENV_VARS["binary"]) or DEFAULT_BINARY),
        api_url=str(
            options.get("apiUrl") or os.environ.get(ENV_VARS["api_url"]) or DEFAULT_API_URL
        ),
        env_key=str(options.get("envKey") or DEFAULT_ENV_KEY),
        startup_delay=_parse_seconds(
            "startupDelay", options.get("startupDelay", DEFAULT_STARTUP_DELAY)
        ),
        startup_timeout=_parse_seconds(
            "startupTimeout", options.get("startupTimeout", DEFAULT_STARTUP_TIMEOUT)
        ),
        poll_interval=_parse_seconds(
            "pollInterval", options.get("pollInterval", DEFAULT_POLL_INTERVAL)
        ),
    )


def _read_config_file(path: str | Path) -> dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data


def load_orcdk_config(path: str | Path) -> OrcdkConfig:
    """Load orchestrator configuration from a YAML or JSON file.

    Args:
        path: Path to the orchestrator config file

    Returns:
        OrcdkConfig

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    return OrcdkConfig.from_dict(_read_config_file(path))


def find_plugin_config(path: str | Path, name: str) -> PluginConfig | None:
    """Find a plugin entry by name in an orchestrator config file.

    Args:
        path: Path to the orchestrator config file
        name: Plugin name

    Returns:
        PluginConfig, or None if the file has no entry for the plugin

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    plugins = _read_config_file(path).get("plugins") or []
    if not isinstance(plugins, list):
        raise ConfigurationError("'plugins' must be a list")

    for entry in plugins:
        if isinstance(entry, dict) and entry.get("name") == name:
            return PluginConfig.from_dict(entry)
    return None
