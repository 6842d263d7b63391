"""Install record - what the last install put where.

``update`` and ``uninstall`` read it back to rebuild the same plan. Stored as
``install.json`` in the user config directory.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from pathlib import Path

from espenv.core.structured import (
    as_obj_list,
    as_str_dict,
    get_bool,
    get_str,
    get_str_list,
)
from espenv.platform.files import atomic_write_text
from espenv.toolchain.base import EnvExport, EnvKind

__all__ = ["InstallRecord", "ConfigStore", "RECORD_FILE_NAME"]

RECORD_FILE_NAME = "install.json"


def _no_strings() -> tuple[str, ...]:
    return ()


def _no_exports() -> tuple[EnvExport, ...]:
    return ()


@dataclass(frozen=True, slots=True)
class InstallRecord:
    """State of the current installation.

    Attributes:
        toolchain_version: exact (four-component) compiler version
        toolchain_destination: install root holding the compiler and env scripts
        llvm_path: LLVM destination, None when no Xtensa target was installed
        gcc_paths: GCC destinations
        exports: environment changes applied, needed to undo registry edits
        installed_at: ISO timestamp
    """

    host_triple: str
    targets: tuple[str, ...]
    toolchain_name: str
    toolchain_version: str
    toolchain_destination: str
    nightly_version: str
    installed_at: str
    llvm_path: str | None = None
    extended_llvm: bool = False
    gcc_paths: tuple[str, ...] = field(default_factory=_no_strings)
    esp_idf_version: str | None = None
    export_file: str | None = None
    std: bool = False
    esp_riscv_gcc: bool = False
    exports: tuple[EnvExport, ...] = field(default_factory=_no_exports)

    def stamped(self) -> InstallRecord:
        """Copy with ``installed_at`` set to now."""
        return replace(self, installed_at=datetime.now().isoformat(timespec="seconds"))

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["targets"] = list(self.targets)
        data["gcc_paths"] = list(self.gcc_paths)
        data["exports"] = [
            {"key": e.key, "value": e.value, "kind": e.kind.name} for e in self.exports
        ]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> InstallRecord | None:
        """Parse a stored record; None if required fields are missing."""
        required = {
            key: get_str(data, key)
            for key in (
                "host_triple",
                "toolchain_name",
                "toolchain_version",
                "toolchain_destination",
                "nightly_version",
                "installed_at",
            )
        }
        targets = get_str_list(data, "targets")
        if targets is None or any(v is None for v in required.values()):
            return None

        exports: list[EnvExport] = []
        for item_obj in as_obj_list(data.get("exports")) or []:
            item = as_str_dict(item_obj)
            if item is None:
                return None
            key, value, kind = get_str(item, "key"), get_str(item, "value"), get_str(item, "kind")
            if key is None or value is None or kind not in EnvKind.__members__:
                return None
            exports.append(EnvExport(key=key, value=value, kind=EnvKind[kind]))

        return cls(
            host_triple=required["host_triple"] or "",
            targets=tuple(targets),
            toolchain_name=required["toolchain_name"] or "",
            toolchain_version=required["toolchain_version"] or "",
            toolchain_destination=required["toolchain_destination"] or "",
            nightly_version=required["nightly_version"] or "",
            installed_at=required["installed_at"] or "",
            llvm_path=get_str(data, "llvm_path"),
            extended_llvm=bool(get_bool(data, "extended_llvm")),
            gcc_paths=tuple(get_str_list(data, "gcc_paths") or ()),
            esp_idf_version=get_str(data, "esp_idf_version"),
            export_file=get_str(data, "export_file"),
            std=bool(get_bool(data, "std")),
            esp_riscv_gcc=bool(get_bool(data, "esp_riscv_gcc")),
            exports=tuple(exports),
        )


class ConfigStore:
    """Reads and writes the install record.

    Usage:
        store = ConfigStore(user_config_dir())
        record = store.load()
    """

    def __init__(self, directory: Path) -> None:
        self._path = directory / RECORD_FILE_NAME

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> InstallRecord | None:
        """The stored record, or None if missing or unreadable."""
        if not self._path.exists():
            return None
        try:
            data = as_str_dict(json.loads(self._path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, UnicodeDecodeError, OSError):
            # Corrupted record; behave as if nothing was installed.
            return None
        if data is None:
            return None
        return InstallRecord.from_dict(data)

    def save(self, record: InstallRecord) -> None:
        """Write the record atomically.

        Raises:
            OSError: if the config directory is not writable.
        """
        atomic_write_text(self._path, json.dumps(record.to_dict(), indent=2) + "\n")

    def delete(self) -> bool:
        if not self._path.exists():
            return False
        self._path.unlink()
        return True
