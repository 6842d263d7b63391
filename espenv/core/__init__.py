"""Core domain types and logic."""

from .config import Config, ConfigError, load_config
from .errors import ErrorCode, InstallError, ShellError, VersionError, exit_code_for
from .result import Err, Ok, Result, is_err, is_ok
from .targets import Target, parse_targets
from .version import ExtendedVersion, Release, ResolvedVersion, VersionResolver

__all__ = [
    # config
    "Config",
    "ConfigError",
    "load_config",
    # errors
    "ErrorCode",
    "InstallError",
    "ShellError",
    "VersionError",
    "exit_code_for",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
    # targets
    "Target",
    "parse_targets",
    # version
    "ExtendedVersion",
    "Release",
    "ResolvedVersion",
    "VersionResolver",
]
