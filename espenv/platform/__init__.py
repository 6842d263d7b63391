"""Platform abstraction layer."""

from .detection import (
    Arch,
    HostTriple,
    Platform,
    PlatformInfo,
    UnsupportedHostError,
    detect,
    host_triple_for,
    is_windows,
)
from .paths import (
    cargo_home,
    espressif_tools_dir,
    home,
    rustup_home,
    user_config_dir,
)
from .process import (
    MockProcessRunner,
    ProcessError,
    ProcessRunner,
    SubprocessRunner,
    run,
    run_silent,
)

__all__ = [
    # detection
    "Arch",
    "HostTriple",
    "Platform",
    "PlatformInfo",
    "UnsupportedHostError",
    "detect",
    "host_triple_for",
    "is_windows",
    # paths
    "cargo_home",
    "espressif_tools_dir",
    "home",
    "rustup_home",
    "user_config_dir",
    # process
    "MockProcessRunner",
    "ProcessError",
    "ProcessRunner",
    "SubprocessRunner",
    "run",
    "run_silent",
]
