"""Server configuration loader.

Loads the server configuration from a YAML file. Widget definitions live
in code; everything about how they are served lives here.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_PORT = 8000
DEFAULT_SSE_PATH = "/mcp"
DEFAULT_POST_PATH = "/mcp/messages"
DEFAULT_FRONTEND_URL = "http://localhost:4444"


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def expand_env_vars(value: str) -> str:
    """Expand environment variables in a string.

    Supports ${VAR_NAME} syntax. Unknown variables are left unchanged.

    Args:
        value: String potentially containing environment variable references.

    Returns:
        String with known environment variables expanded.
    """
    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if var_name == "HOME":
            return os.path.expanduser("~")
        return match.group(0)

    return pattern.sub(replacer, value)


def parse_port(value: Any, fallback: int = DEFAULT_PORT) -> int:
    """Parse a TCP port number.

    Raises:
        ConfigError: If the value is not an integer in 1-65535.
    """
    if value is None or value == "":
        return fallback
    try:
        port = int(str(value).strip())
    except ValueError:
        raise ConfigError(f"Invalid port value: {value!r}") from None
    if not 1 <= port <= 65535:
        raise ConfigError(f"Invalid port value: {value!r}")
    return port


def read_package_version(path: Path) -> str:
    """Read the ``version`` field of a package.json.

    The frontend build derives its asset hash from this same version.

    Raises:
        ConfigError: If the file is missing, unreadable or has no version.
    """
    try:
        with open(path, encoding="utf-8") as f:
            package = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Version file not found: {path}") from None
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read version file {path}: {e}") from e

    version = package.get("version") if isinstance(package, dict) else None
    if not isinstance(version, str) or not version:
        raise ConfigError(f"No version in {path}")
    return version


def _normalize_path(path: str, name: str) -> str:
    if not path.startswith("/"):
        raise ConfigError(f"{name} must start with '/': {path!r}")
    return path.rstrip("/") or "/"


@dataclass
class ServerConfig:
    """Widget server configuration.

    The version doubles as the asset hash seed, so it must match the
    version the frontend bundles were built with.
    """

    name: str = "mcp-widget-server"
    version: str = "0.0.0"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    sse_path: str = DEFAULT_SSE_PATH
    post_path: str = DEFAULT_POST_PATH
    frontend_url: str = DEFAULT_FRONTEND_URL
    assets_dir: Path = Path("assets")
    log_level: str = "INFO"
    audit_log_file: str = ""

    @classmethod
    def from_dict(cls, config: dict[str, Any], base_dir: Path | None = None) -> ServerConfig:
        """Create a ServerConfig from a configuration dictionary.

        Args:
            config: Dictionary parsed from YAML configuration.
            base_dir: Directory relative paths are resolved against.

        Returns:
            ServerConfig instance with all settings populated.

        Raises:
            ConfigError: If a value is invalid.
        """
        base_dir = base_dir or Path.cwd()
        logging_section = config.get("logging", {}) or {}
        audit = config.get("audit", {}) or {}

        version = config.get("version")
        version_file = config.get("version_file")
        if version_file:
            version = read_package_version(base_dir / expand_env_vars(str(version_file)))
        if version is None:
            version = cls.version

        assets_dir = Path(expand_env_vars(str(config.get("assets_dir", "assets"))))
        if not assets_dir.is_absolute():
            assets_dir = base_dir / assets_dir

        audit_log_file = expand_env_vars(str(audit.get("log_file", "") or ""))
        if audit_log_file and not Path(audit_log_file).is_absolute():
            audit_log_file = str(base_dir / audit_log_file)

        sse_path = _normalize_path(str(config.get("sse_path", DEFAULT_SSE_PATH)), "sse_path")
        post_path = _normalize_path(str(config.get("post_path", DEFAULT_POST_PATH)), "post_path")
        if sse_path == post_path:
            raise ConfigError("sse_path and post_path must differ")

        return cls(
            name=str(config.get("name", cls.name)),
            version=str(version),
            host=str(config.get("host", cls.host)),
            port=parse_port(os.environ.get("PORT") or config.get("port")),
            sse_path=sse_path,
            post_path=post_path,
            frontend_url=str(config.get("frontend_url", DEFAULT_FRONTEND_URL)).rstrip("/"),
            assets_dir=assets_dir,
            log_level=str(logging_section.get("level", "INFO")).upper(),
            audit_log_file=audit_log_file,
        )


def load_config(path: Path) -> ServerConfig:
    """Load server configuration from a YAML file.

    Relative paths inside the file are resolved against its directory.

    Args:
        path: Path to the configuration YAML file.

    Returns:
        ServerConfig instance.

    Raises:
        ConfigError: If the file cannot be found, parsed, or validated.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config YAML: {e}") from e

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigError("Config must be a YAML mapping")

    return ServerConfig.from_dict(config, base_dir=path.resolve().parent)
