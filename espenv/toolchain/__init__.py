"""Installable toolchain components.

Every component is a frozen dataclass with ``name``, ``kind``, ``presence``,
``install`` and ``uninstall``; ``Installable`` is their closed union.
"""

from .base import EnvExport, EnvKind, InstallContext, Presence, ScriptSyntax
from .espidf import FrameworkRepo
from .gcc import RISCV_GCC, XTENSA_GCC, CrossGccToolchain
from .llvm import ClangToolchain
from .rust import CompilerToolchain, StandardLibraryBundle
from .targets import RISCV_TARGETS, TargetSupport

type Installable = (
    CompilerToolchain
    | StandardLibraryBundle
    | ClangToolchain
    | TargetSupport
    | CrossGccToolchain
    | FrameworkRepo
)

__all__ = [
    "ClangToolchain",
    "CompilerToolchain",
    "CrossGccToolchain",
    "EnvExport",
    "EnvKind",
    "FrameworkRepo",
    "InstallContext",
    "Installable",
    "Presence",
    "RISCV_GCC",
    "RISCV_TARGETS",
    "ScriptSyntax",
    "StandardLibraryBundle",
    "TargetSupport",
    "XTENSA_GCC",
]
