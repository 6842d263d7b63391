from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from espenv.core.config import Config
from espenv.core.errors import CoreError, InstallError, ShellError, VersionError
from espenv.core.result import Err, Ok, Result
from espenv.core.targets import Target, sorted_targets
from espenv.core.version import (
    RE_SEMANTIC_VERSION,
    ExtendedVersion,
    ResolvedVersion,
    VersionResolver,
    parse_extended,
)
from espenv.env.integrator import ShellIntegrator
from espenv.env.policy import PlatformPolicy
from espenv.env.scripts import generate_env_script, script_path, source_line
from espenv.output.console import ConsoleProtocol, Style
from espenv.platform import paths
from espenv.platform.detection import HostTriple
from espenv.platform.files import atomic_write_text
from espenv.platform.process import ProcessRunner
from espenv.services.state import ConfigStore, InstallRecord
from espenv.toolchain import (
    RISCV_GCC,
    XTENSA_GCC,
    ClangToolchain,
    CompilerToolchain,
    CrossGccToolchain,
    EnvExport,
    FrameworkRepo,
    InstallContext,
    Installable,
    ScriptSyntax,
    StandardLibraryBundle,
    TargetSupport,
)
from espenv.toolchain.base import remove_directory
from espenv.tools.fetch import ArtifactFetcher
from espenv.tools.github import GitHubReleaseIndex
from espenv.tools.http import HttpClient

__all__ = [
    "InstallPlan",
    "InstallReport",
    "InstallRequest",
    "ServicePaths",
    "ToolchainService",
    "UninstallReport",
]


@dataclass(frozen=True, slots=True)
class ServicePaths:
    home: Path
    rustup_home: Path
    espressif_dir: Path
    config_dir: Path

    @classmethod
    def detect(cls) -> ServicePaths:
        return cls(
            home=paths.home(),
            rustup_home=paths.rustup_home(),
            espressif_dir=paths.espressif_tools_dir(),
            config_dir=paths.user_config_dir(),
        )

    def install_root(self, toolchain_name: str) -> Path:
        return self.rustup_home / "toolchains" / toolchain_name


@dataclass(frozen=True, slots=True)
class InstallRequest:
    """What the user asked for; ``None`` fields fall back to config, then defaults."""

    targets: frozenset[Target]
    version: str | None = None
    host: HostTriple | None = None
    toolchain_name: str | None = None
    nightly_version: str | None = None
    esp_idf_version: str | None = None
    export_file: Path | None = None
    extended_llvm: bool = False
    std: bool = False
    esp_riscv_gcc: bool = False
    skip_version_parse: bool = False
    modify_env: bool = True


@dataclass(frozen=True, slots=True)
class InstallPlan:
    host: HostTriple
    version: ExtendedVersion
    install_root: Path
    installables: tuple[Installable, ...]


@dataclass(frozen=True, slots=True)
class InstallReport:
    plan: InstallPlan
    exports: tuple[EnvExport, ...]
    record: InstallRecord
    export_file: Path | None = None
    shell_errors: tuple[ShellError, ...] = ()


def _no_errors() -> list[CoreError]:
    return []


@dataclass
class UninstallReport:
    removed: list[str] = field(default_factory=list)
    errors: list[CoreError] = field(default_factory=_no_errors)


class ToolchainService:
    """Installs, updates and removes the toolchain set.

    Components are installed one at a time in dependency order. The first
    failure stops the run; components installed before it are kept and
    reported (``uninstall`` removes them).
    """

    def __init__(
        self,
        *,
        config: Config,
        console: ConsoleProtocol,
        http: HttpClient,
        runner: ProcessRunner,
        host: HostTriple,
        policy: PlatformPolicy,
        paths: ServicePaths,
        store: ConfigStore | None = None,
        use_download_worker: bool = True,
    ) -> None:
        self._config = config
        self._console = console
        self._http = http
        self._runner = runner
        self._host = host
        self._policy = policy
        self._paths = paths
        self._store = store or ConfigStore(paths.config_dir)
        self._use_download_worker = use_download_worker

    @property
    def store(self) -> ConfigStore:
        return self._store

    # -- version -------------------------------------------------------------

    def resolve_version(
        self, requested: str | None, *, skip_version_parse: bool = False
    ) -> Result[ResolvedVersion, VersionError]:
        requested = requested or self._config.toolchain.version
        if requested is not None and skip_version_parse:
            exact = parse_extended(requested)
            if exact is None:
                return Err(
                    VersionError(
                        kind="invalid_format",
                        requested=requested,
                        message="Version must be '<major>.<minor>.<patch>.<subpatch>'"
                        " when version parsing is skipped",
                    )
                )
            return Ok(ResolvedVersion(requested=requested, exact=exact))

        index = GitHubReleaseIndex(self._http, self._config.network.releases_url)
        resolver = VersionResolver(index)
        if requested is None:
            return resolver.latest()
        return resolver.resolve(requested)

    # -- plan ----------------------------------------------------------------

    def plan(self, request: InstallRequest, version: ExtendedVersion) -> InstallPlan:
        """Components for the requested targets, in install order.

        The Xtensa compiler, its sources, LLVM and the Xtensa GCC are only
        needed for Xtensa chips. RISC-V chips build with an upstream nightly;
        the Espressif RISC-V GCC is opt-in (``esp_riscv_gcc``) for any chip
        with a RISC-V core. No GCC is installed for ``std`` projects.
        """
        host = request.host or self._host
        name = request.toolchain_name or self._config.toolchain.name
        nightly = request.nightly_version or self._config.toolchain.nightly_version
        install_root = self._paths.install_root(name)
        xtensa = any(t.is_xtensa for t in request.targets)
        riscv = any(t.is_riscv for t in request.targets)

        steps: list[Installable] = []
        if xtensa:
            steps.append(
                CompilerToolchain(
                    version=version, host=host, destination=install_root, toolchain_name=name
                )
            )
            steps.append(
                StandardLibraryBundle(version=version, host=host, destination=install_root)
            )
            steps.append(
                ClangToolchain(
                    host=host, toolchain_dir=install_root, extended=request.extended_llvm
                )
            )
        if riscv:
            steps.append(
                TargetSupport(
                    nightly_version=nightly, host=host, rustup_home=self._paths.rustup_home
                )
            )
        if xtensa and not request.std:
            steps.append(
                CrossGccToolchain(toolchain=XTENSA_GCC, host=host, toolchain_dir=install_root)
            )
        # ESP32-S2/S3 also carry a RISC-V ULP core; only the plain ESP32 has none.
        has_riscv_core = any(t is not Target.ESP32 for t in request.targets)
        if has_riscv_core and request.esp_riscv_gcc and not request.std:
            steps.append(
                CrossGccToolchain(toolchain=RISCV_GCC, host=host, toolchain_dir=install_root)
            )
        if request.esp_idf_version:
            steps.append(
                FrameworkRepo(
                    ref=request.esp_idf_version,
                    host=host,
                    tools_dir=self._paths.espressif_dir,
                    targets=tuple(sorted_targets(request.targets)),
                )
            )

        return InstallPlan(
            host=host,
            version=version,
            install_root=install_root,
            installables=tuple(steps),
        )

    def dry_run(self, request: InstallRequest) -> InstallPlan | None:
        """Print the plan. No network access and nothing is written.

        A three-component version is shown with subpatch 0, the build is
        only picked at install time.
        """
        requested = request.version or self._config.toolchain.version
        if requested is None:
            self._console.print("Toolchain version: latest release (resolved at install time)")
            version = ExtendedVersion(0, 0, 0, 0)
        elif (exact := parse_extended(requested)) is not None:
            self._console.print(f"Toolchain version: {exact}")
            version = exact
        elif RE_SEMANTIC_VERSION.match(requested):
            self._console.print(f"Toolchain version: newest build of {requested}")
            major, minor, patch = (int(part) for part in requested.split("."))
            version = ExtendedVersion(major, minor, patch, 0)
        else:
            self._console.error(f"Invalid toolchain version: '{requested}'")
            return None

        plan = self.plan(request, version)
        self._console.print(f"Host: {plan.host}")
        targets = ", ".join(t.value for t in sorted_targets(request.targets))
        self._console.print(f"Targets: {targets}")
        self._console.header("Plan")
        for step in plan.installables:
            self._console.print(f"  {step.name} -> {step.destination}", Style.DIM)
        self._console.print(f"Environment scripts in {plan.install_root}", Style.DIM)
        return plan

    # -- install / update ----------------------------------------------------

    def install(self, request: InstallRequest) -> Result[InstallReport, CoreError]:
        resolved = self.resolve_version(
            request.version, skip_version_parse=request.skip_version_parse
        )
        if isinstance(resolved, Err):
            return resolved
        self._console.info(f"Using Xtensa Rust {resolved.value.exact}")

        plan = self.plan(request, resolved.value.exact)
        ran = self._run_plan(plan)
        if isinstance(ran, Err):
            return ran
        exports = ran.value

        export_file = request.export_file or self._config.paths.export_file_path()
        if export_file is not None:
            written = self._write_export_file(export_file, exports)
            if isinstance(written, Err):
                return written

        integrator = self._integrator(keep_file=export_file)
        shell_errors = integrator.do_write_env_files(plan.install_root, exports)
        if request.modify_env:
            shell_errors.extend(integrator.do_add_to_path(plan.install_root, exports))

        record = self._record(request, plan, exports, export_file)
        try:
            self._store.save(record)
        except OSError as e:
            return Err(
                InstallError(
                    kind="create_directory",
                    component="install record",
                    path=self._store.path,
                    message=f"Cannot save install record: {e}",
                )
            )

        return Ok(
            InstallReport(
                plan=plan,
                exports=tuple(exports),
                record=record,
                export_file=export_file,
                shell_errors=tuple(shell_errors),
            )
        )

    def update(
        self, version: str | None = None, *, modify_env: bool = True
    ) -> Result[InstallReport, CoreError]:
        """Reinstall the recorded set with the requested (or newest) version."""
        record = self._store.load()
        if record is None:
            return Err(self._not_installed())

        request = self._request_from_record(record, version=version, modify_env=modify_env)
        if isinstance(request, Err):
            return request
        return self.install(request.value)

    def _request_from_record(
        self, record: InstallRecord, *, version: str | None = None, modify_env: bool = True
    ) -> Result[InstallRequest, InstallError]:
        """The request that produced ``record``, for the host it was made for."""
        try:
            host = HostTriple.parse(record.host_triple)
            targets = frozenset(Target(t) for t in record.targets)
        except ValueError as e:
            return Err(
                InstallError(
                    kind="not_installed",
                    component="install record",
                    path=self._store.path,
                    message=f"Install record is invalid: {e}",
                )
            )
        return Ok(
            InstallRequest(
                targets=targets,
                version=version,
                host=host,
                toolchain_name=record.toolchain_name,
                nightly_version=record.nightly_version,
                esp_idf_version=record.esp_idf_version,
                export_file=Path(record.export_file) if record.export_file else None,
                extended_llvm=record.extended_llvm,
                std=record.std,
                esp_riscv_gcc=record.esp_riscv_gcc,
                modify_env=modify_env,
            )
        )

    def _run_plan(self, plan: InstallPlan) -> Result[list[EnvExport], InstallError]:
        exports: list[EnvExport] = []
        completed: list[str] = []

        executor = ThreadPoolExecutor(max_workers=1) if self._use_download_worker else None
        try:
            fetcher = ArtifactFetcher(self._http, console=self._console, executor=executor)
            ctx = InstallContext(fetcher=fetcher, runner=self._runner, console=self._console)
            for step in plan.installables:
                self._console.header(step.name)
                result = step.install(ctx)
                if isinstance(result, Err):
                    self._report_partial(completed)
                    return result
                exports.extend(result.value)
                completed.append(step.name)
                self._console.success(step.name)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)
        return Ok(exports)

    def _report_partial(self, completed: Sequence[str]) -> None:
        if not completed:
            return
        self._console.warning(
            f"Installed before the failure and kept: {', '.join(completed)}. "
            "Run 'espenv uninstall' to remove them."
        )

    def _write_export_file(
        self, path: Path, exports: Sequence[EnvExport]
    ) -> Result[None, InstallError]:
        syntax = ScriptSyntax.POWERSHELL if self._host.is_windows else ScriptSyntax.POSIX
        try:
            atomic_write_text(path, generate_env_script(syntax, exports))
        except OSError as e:
            return Err(
                InstallError(
                    kind="create_directory",
                    component="export file",
                    path=path,
                    message=f"Cannot write export file: {e}",
                )
            )
        return Ok(None)

    def _integrator(self, *, keep_file: Path | None) -> ShellIntegrator:
        name = "export-esp.ps1" if self._host.is_windows else "export-esp.sh"
        return ShellIntegrator(
            self._policy,
            self._console,
            legacy_export_file=self._paths.home / name,
            keep_file=keep_file,
        )

    def _record(
        self,
        request: InstallRequest,
        plan: InstallPlan,
        exports: Sequence[EnvExport],
        export_file: Path | None,
    ) -> InstallRecord:
        clang = next((s for s in plan.installables if isinstance(s, ClangToolchain)), None)
        gccs = [s for s in plan.installables if isinstance(s, CrossGccToolchain)]
        return InstallRecord(
            host_triple=str(plan.host),
            targets=tuple(t.value for t in sorted_targets(request.targets)),
            toolchain_name=plan.install_root.name,
            toolchain_version=str(plan.version),
            toolchain_destination=str(plan.install_root),
            nightly_version=request.nightly_version or self._config.toolchain.nightly_version,
            installed_at="",
            llvm_path=str(clang.destination) if clang else None,
            extended_llvm=request.extended_llvm,
            gcc_paths=tuple(str(g.destination) for g in gccs),
            esp_idf_version=request.esp_idf_version,
            export_file=str(export_file) if export_file else None,
            std=request.std,
            esp_riscv_gcc=request.esp_riscv_gcc,
            exports=tuple(exports),
        ).stamped()

    # -- uninstall -----------------------------------------------------------

    def uninstall(self) -> Result[UninstallReport, InstallError]:
        """Remove everything the install record lists.

        Every component is attempted even if an earlier one fails; failures
        are collected in the report. The record is only deleted once every
        component is gone.
        """
        record = self._store.load()
        if record is None:
            return Err(self._not_installed())

        version = parse_extended(record.toolchain_version)
        if version is None:
            return Err(
                InstallError(
                    kind="not_installed",
                    component="install record",
                    path=self._store.path,
                    message=f"Recorded toolchain version is invalid: '{record.toolchain_version}'",
                )
            )

        request = self._request_from_record(record)
        if isinstance(request, Err):
            return request
        plan = self.plan(request.value, version)
        report = UninstallReport()

        fetcher = ArtifactFetcher(self._http, console=self._console)
        ctx = InstallContext(fetcher=fetcher, runner=self._runner, console=self._console)
        for step in reversed(plan.installables):
            self._console.print(f"Removing {step.name}")
            result = step.uninstall(ctx)
            if isinstance(result, Err):
                self._failed(report, result.error)
            else:
                report.removed.append(step.name)

        integrator = self._integrator(keep_file=None)
        for shell_error in integrator.do_remove_from_path(plan.install_root, record.exports):
            self._failed(report, shell_error)

        export_file = Path(record.export_file) if record.export_file else None
        if export_file is not None and export_file.exists():
            try:
                export_file.unlink()
            except OSError as e:
                self._failed(
                    report,
                    InstallError(
                        kind="remove_directory",
                        component="export file",
                        path=export_file,
                        message=f"Cannot remove export file: {e}",
                    ),
                )

        # The record stays while components are left behind, so a retry knows them.
        if len(report.removed) < len(plan.installables):
            return Ok(report)
        # RISC-V only installs have no compiler step; the root holds just the env scripts.
        cleaned = remove_directory(plan.install_root, "environment scripts")
        if isinstance(cleaned, Err):
            self._failed(report, cleaned.error)
        try:
            self._store.delete()
        except OSError as e:
            self._failed(
                report,
                InstallError(
                    kind="remove_directory",
                    component="install record",
                    path=self._store.path,
                    message=f"Cannot remove install record: {e}",
                ),
            )
        return Ok(report)

    def _failed(self, report: UninstallReport, error: CoreError) -> None:
        self._console.error(str(error))
        report.errors.append(error)

    def _not_installed(self) -> InstallError:
        return InstallError(
            kind="not_installed",
            component="espenv",
            path=self._store.path,
            message="No installation found, run 'espenv install' first",
        )

    def activation_hint(self, report: InstallReport) -> list[str]:
        """Lines telling the user how to load the environment in the current shell."""
        root = report.plan.install_root
        if self._host.is_windows:
            return [
                "Restart your terminal, or run in PowerShell:",
                f"    {source_line(root, ScriptSyntax.POWERSHELL)}",
            ]
        lines = [
            "New login shells load the environment automatically. In this shell run:",
            f"    {source_line(root, ScriptSyntax.POSIX)}",
        ]
        if script_path(root, ScriptSyntax.FISH).exists():
            lines.append(f"    {source_line(root, ScriptSyntax.FISH)}   (fish)")
        return lines
