"""Services orchestrating installation."""

from .state import ConfigStore, InstallRecord
from .toolchains import (
    InstallPlan,
    InstallReport,
    InstallRequest,
    ServicePaths,
    ToolchainService,
    UninstallReport,
)

__all__ = [
    "ConfigStore",
    "InstallPlan",
    "InstallRecord",
    "InstallReport",
    "InstallRequest",
    "ServicePaths",
    "ToolchainService",
    "UninstallReport",
]
