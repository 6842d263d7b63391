"""Espressif chip targets."""

from __future__ import annotations

import re
from enum import Enum

__all__ = ["Target", "TargetParseError", "parse_targets", "sorted_targets"]


class Target(Enum):
    """Supported chips, valued by their command-line spelling."""

    ESP32 = "esp32"
    ESP32C2 = "esp32c2"
    ESP32C3 = "esp32c3"
    ESP32C6 = "esp32c6"
    ESP32H2 = "esp32h2"
    ESP32P4 = "esp32p4"
    ESP32S2 = "esp32s2"
    ESP32S3 = "esp32s3"

    def __str__(self) -> str:
        return self.value

    @property
    def is_xtensa(self) -> bool:
        """Xtensa cores need the patched compiler, rust-src and clang."""
        return self in (Target.ESP32, Target.ESP32S2, Target.ESP32S3)

    @property
    def is_riscv(self) -> bool:
        return not self.is_xtensa


class TargetParseError(ValueError):
    """Raised for an unknown target name on the command line."""


def parse_targets(text: str) -> frozenset[Target]:
    """Parse ``all`` or a comma/space separated list of chip names.

    Raises:
        TargetParseError: if any name is not a known chip.
    """
    text = text.strip().lower()
    if text == "all" or "all" in re.split(r"[,\s]+", text):
        return frozenset(Target)

    targets: set[Target] = set()
    for name in re.split(r"[,\s]+", text):
        if not name:
            continue
        try:
            targets.add(Target(name))
        except ValueError:
            known = ", ".join(t.value for t in Target)
            raise TargetParseError(f"Target '{name}' is not supported (known: {known})") from None
    if not targets:
        raise TargetParseError("No targets given")
    return frozenset(targets)


def sorted_targets(targets: frozenset[Target] | set[Target]) -> list[Target]:
    """Stable order for display and persistence."""
    return sorted(targets, key=lambda t: t.value)
