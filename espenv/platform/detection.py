"""Platform, architecture and host-triple detection.

Detection is done lazily and cached. Every installable takes the host triple
explicitly so tests can exercise other platforms' code paths on one machine.
"""

from __future__ import annotations

import os as _os
import platform as _platform
import sys as _sys
from dataclasses import dataclass
from enum import Enum, auto
from functools import lru_cache

__all__ = [
    "Platform",
    "Arch",
    "HostTriple",
    "PlatformInfo",
    "UnsupportedHostError",
    "detect",
    "detect_arch",
    "detect_platform",
    "host_triple_for",
    "is_windows",
]


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def is_unix(self) -> bool:
        return self in (Platform.LINUX, Platform.MACOS)

    def exe_name(self, name: str) -> str:
        """``rustc`` -> ``rustc.exe`` on Windows."""
        return f"{name}.exe" if self == Platform.WINDOWS else name


class Arch(Enum):
    """CPU architecture."""

    X64 = auto()
    ARM64 = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()


class HostTriple(Enum):
    """Host triples for which upstream publishes toolchain builds."""

    X86_64_LINUX_GNU = "x86_64-unknown-linux-gnu"
    AARCH64_LINUX_GNU = "aarch64-unknown-linux-gnu"
    X86_64_WINDOWS_MSVC = "x86_64-pc-windows-msvc"
    X86_64_WINDOWS_GNU = "x86_64-pc-windows-gnu"
    X86_64_APPLE_DARWIN = "x86_64-apple-darwin"
    AARCH64_APPLE_DARWIN = "aarch64-apple-darwin"

    def __str__(self) -> str:
        return self.value

    @property
    def platform(self) -> Platform:
        if self in (HostTriple.X86_64_WINDOWS_MSVC, HostTriple.X86_64_WINDOWS_GNU):
            return Platform.WINDOWS
        if self in (HostTriple.X86_64_APPLE_DARWIN, HostTriple.AARCH64_APPLE_DARWIN):
            return Platform.MACOS
        return Platform.LINUX

    @property
    def is_windows(self) -> bool:
        return self.platform == Platform.WINDOWS

    @classmethod
    def parse(cls, text: str) -> HostTriple:
        """Parse a triple string.

        Raises:
            UnsupportedHostError: for triples without upstream builds.
        """
        try:
            return cls(text.strip())
        except ValueError:
            raise UnsupportedHostError(f"Host triple '{text}' is not supported") from None


class UnsupportedHostError(ValueError):
    """The machine (or --default-host) has no upstream toolchain builds."""


@dataclass(frozen=True, slots=True)
class PlatformInfo:
    """Complete platform information; use ``detect()`` to get one."""

    platform: Platform
    arch: Arch

    @property
    def is_windows(self) -> bool:
        return self.platform == Platform.WINDOWS

    @property
    def is_unix(self) -> bool:
        return self.platform.is_unix

    def __str__(self) -> str:
        return f"{self.platform}-{self.arch}"


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the current operating system (cached)."""
    # NOTE: platform.system() may query WMI on Windows, which can hang.
    system = _sys.platform.lower()
    if system.startswith("linux"):
        return Platform.LINUX
    if system.startswith("darwin"):
        return Platform.MACOS
    if system.startswith(("win32", "cygwin", "msys")):
        return Platform.WINDOWS
    return Platform.UNKNOWN


@lru_cache(maxsize=1)
def detect_arch() -> Arch:
    """Detect the current CPU architecture (cached)."""
    if detect_platform() == Platform.WINDOWS:
        machine = (
            _os.environ.get("PROCESSOR_ARCHITEW6432")
            or _os.environ.get("PROCESSOR_ARCHITECTURE")
            or ""
        ).lower()
    else:
        machine = _platform.machine().lower()
    if machine in ("x86_64", "amd64"):
        return Arch.X64
    if machine in ("aarch64", "arm64"):
        return Arch.ARM64
    return Arch.UNKNOWN


@lru_cache(maxsize=1)
def detect() -> PlatformInfo:
    """Detect platform and architecture (cached)."""
    return PlatformInfo(platform=detect_platform(), arch=detect_arch())


def host_triple_for(info: PlatformInfo) -> HostTriple:
    """Map detected platform info to the upstream host triple.

    Raises:
        UnsupportedHostError: when no upstream build exists for this host.
    """
    match (info.platform, info.arch):
        case (Platform.LINUX, Arch.X64):
            return HostTriple.X86_64_LINUX_GNU
        case (Platform.LINUX, Arch.ARM64):
            return HostTriple.AARCH64_LINUX_GNU
        case (Platform.MACOS, Arch.X64):
            return HostTriple.X86_64_APPLE_DARWIN
        case (Platform.MACOS, Arch.ARM64):
            return HostTriple.AARCH64_APPLE_DARWIN
        case (Platform.WINDOWS, Arch.X64):
            return HostTriple.X86_64_WINDOWS_MSVC
    raise UnsupportedHostError(f"Host '{info}' is not supported")


def is_windows() -> bool:
    return detect_platform() == Platform.WINDOWS
