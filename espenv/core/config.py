"""User settings loaded from ``config.toml``.

Settings are optional; every field has a built-in default and command-line
flags take precedence over anything read here.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "NetworkConfig",
    "PathsConfig",
    "ToolchainConfig",
    "DEFAULT_RELEASES_URL",
    "DEFAULT_TOOLCHAIN_NAME",
    "load_config",
    "load_config_or_default",
]

DEFAULT_TOOLCHAIN_NAME = "esp"
DEFAULT_NIGHTLY_VERSION = "nightly"
DEFAULT_RELEASES_URL = "https://api.github.com/repos/esp-rs/rust-build/releases"
DEFAULT_TIMEOUT = 60


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ToolchainConfig:
    name: str = DEFAULT_TOOLCHAIN_NAME
    version: str | None = None
    nightly_version: str = DEFAULT_NIGHTLY_VERSION


@dataclass(frozen=True, slots=True)
class PathsConfig:
    """Path overrides; ``~`` is expanded on access."""

    export_file: str | None = None

    def export_file_path(self) -> Path | None:
        return Path(self.export_file).expanduser() if self.export_file else None


@dataclass(frozen=True, slots=True)
class NetworkConfig:
    timeout: int = DEFAULT_TIMEOUT
    releases_url: str = DEFAULT_RELEASES_URL


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        toolchain: StrDict = get_table(data, "toolchain") or {}
        paths: StrDict = get_table(data, "paths") or {}
        network: StrDict = get_table(data, "network") or {}

        timeout = get_int(network, "timeout")
        if timeout is not None and timeout <= 0:
            raise ValueError(f"network.timeout must be positive, got {timeout}")

        return cls(
            toolchain=ToolchainConfig(
                name=get_str(toolchain, "name") or DEFAULT_TOOLCHAIN_NAME,
                version=get_str(toolchain, "version"),
                nightly_version=get_str(toolchain, "nightly_version") or DEFAULT_NIGHTLY_VERSION,
            ),
            paths=PathsConfig(export_file=get_str(paths, "export_file")),
            network=NetworkConfig(
                timeout=timeout or DEFAULT_TIMEOUT,
                releases_url=get_str(network, "releases_url") or DEFAULT_RELEASES_URL,
            ),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and syntax errors."""
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and validate settings from a TOML file."""
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Config:
    """Settings from ``path`` when it exists and parses, else defaults."""
    result = load_config(path)
    if isinstance(result, Ok):
        return result.value
    return Config()
