"""Environment scripts and shell integration."""

from .integrator import ShellIntegrator
from .policy import (
    EnvironmentStore,
    InMemoryStore,
    PlatformPolicy,
    PosixPolicy,
    RegistryPolicy,
    WinregStore,
    select_policy,
)
from .scripts import generate_env_script, source_line
from .shell import (
    ShellEnvironment,
    ShellKind,
    ShellProfile,
    append_sourcing_line,
    probe_shells,
    remove_sourcing_line,
)

__all__ = [
    "EnvironmentStore",
    "InMemoryStore",
    "PlatformPolicy",
    "PosixPolicy",
    "RegistryPolicy",
    "ShellEnvironment",
    "ShellIntegrator",
    "ShellKind",
    "ShellProfile",
    "WinregStore",
    "append_sourcing_line",
    "generate_env_script",
    "probe_shells",
    "remove_sourcing_line",
    "select_policy",
    "source_line",
]
