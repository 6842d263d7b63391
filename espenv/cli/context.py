from __future__ import annotations

import os
from dataclasses import dataclass

import typer

from espenv.core.config import Config, load_config
from espenv.core.errors import ErrorCode
from espenv.core.result import Err
from espenv.env.policy import select_policy
from espenv.env.shell import ShellEnvironment
from espenv.output.console import ConsoleProtocol, RichConsole
from espenv.platform.detection import (
    HostTriple,
    UnsupportedHostError,
    detect,
    host_triple_for,
)
from espenv.platform.paths import user_config_dir
from espenv.platform.process import SubprocessRunner
from espenv.services.toolchains import ServicePaths, ToolchainService
from espenv.tools.http import RealHttpClient

CONFIG_FILE_NAME = "config.toml"


@dataclass(frozen=True, slots=True)
class CLIContext:
    host: HostTriple
    config: Config
    console: ConsoleProtocol
    service: ToolchainService


def build_context(*, verbose: bool = False, default_host: str | None = None) -> CLIContext:
    console = RichConsole(verbose=verbose)

    # --default-host only picks the downloads; shell integration follows this machine.
    machine = detect()
    try:
        host = HostTriple.parse(default_host) if default_host else host_triple_for(machine)
    except UnsupportedHostError as e:
        console.error(str(e))
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    config = Config()
    config_path = user_config_dir() / CONFIG_FILE_NAME
    if config_path.exists():
        config_result = load_config(config_path)
        if isinstance(config_result, Err):
            console.error(config_result.error.message)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        config = config_result.value
        console.debug(f"Loaded settings from {config_path}")

    paths = ServicePaths.detect()
    runner = SubprocessRunner()
    shell_env = ShellEnvironment(home=paths.home, environ=dict(os.environ), runner=runner)
    service = ToolchainService(
        config=config,
        console=console,
        http=RealHttpClient(timeout=float(config.network.timeout)),
        runner=runner,
        host=host,
        policy=select_policy(machine.platform, shell_env=shell_env),
        paths=paths,
    )
    return CLIContext(host=host, config=config, console=console, service=service)
