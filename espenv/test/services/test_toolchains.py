"""Tests for services/toolchains.py - install, update and uninstall end to end."""

from __future__ import annotations

import io
import tarfile
from dataclasses import dataclass, replace
from pathlib import Path

import pytest

from espenv.core.config import DEFAULT_RELEASES_URL, Config, PathsConfig
from espenv.core.result import Err, Ok
from espenv.core.targets import Target
from espenv.core.version import ExtendedVersion
from espenv.env.policy import PosixPolicy
from espenv.env.scripts import source_line
from espenv.env.shell import ShellEnvironment
from espenv.output.console import MockConsole
from espenv.platform.detection import HostTriple
from espenv.platform.process import MockProcessRunner
from espenv.services.toolchains import InstallRequest, ServicePaths, ToolchainService
from espenv.toolchain import (
    ClangToolchain,
    CompilerToolchain,
    CrossGccToolchain,
    FrameworkRepo,
    ScriptSyntax,
    StandardLibraryBundle,
    TargetSupport,
)
from espenv.tools.http import MockHttpClient

HOST = HostTriple.X86_64_LINUX_GNU
INDEX_URL = f"{DEFAULT_RELEASES_URL}?per_page=100"
TARGET_LIST = ("rustup", "target", "list", "--installed", "--toolchain", "nightly")
RESOLVED = ExtendedVersion(1, 65, 0, 1)


def tar_xz_bytes(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:xz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@dataclass
class Harness:
    service: ToolchainService
    http: MockHttpClient
    runner: MockProcessRunner
    console: MockConsole
    paths: ServicePaths

    @property
    def root(self) -> Path:
        return self.paths.install_root("esp")

    @property
    def profile(self) -> Path:
        return self.paths.home / ".profile"


def make_harness(
    tmp_path: Path, config: Config | None = None, *, use_download_worker: bool = True
) -> Harness:
    home = tmp_path / "home"
    home.mkdir()
    paths = ServicePaths(
        home=home,
        rustup_home=home / ".rustup",
        espressif_dir=home / ".espressif",
        config_dir=tmp_path / "config",
    )
    http = MockHttpClient()
    http.set_json(INDEX_URL, [{"tag_name": "v1.65.0.0"}, {"tag_name": "v1.65.0.1"}])
    root = paths.install_root("esp")
    for version in (ExtendedVersion(1, 65, 0, 0), RESOLVED):
        for url in (
            CompilerToolchain(version=version, host=HOST, destination=root).artifact_url,
            StandardLibraryBundle(version=version, host=HOST, destination=root).artifact_url,
        ):
            http.set_download(url, tar_xz_bytes({"installer/install.sh": b"#!/bin/sh\n"}))
    http.set_download(
        ClangToolchain(host=HOST, toolchain_dir=root).artifact_url,
        tar_xz_bytes({"esp-clang/lib/libclang.so": b""}),
    )
    for name in ("xtensa-esp-elf", "riscv32-esp-elf"):
        gcc = CrossGccToolchain(toolchain=name, host=HOST, toolchain_dir=root)  # type: ignore[arg-type]
        http.set_download(gcc.artifact_url, tar_xz_bytes({f"{name}/bin/{name}-gcc": b""}))

    runner = MockProcessRunner()
    runner.set_output(["bash"])
    runner.set_output(TARGET_LIST, "")
    runner.set_output(["rustup", "target"])

    console = MockConsole()
    shell_env = ShellEnvironment(home=home, environ={}, runner=runner, which=lambda _n: None)
    service = ToolchainService(
        config=config or Config(),
        console=console,
        http=http,
        runner=runner,
        host=HOST,
        policy=PosixPolicy(shell_env),
        paths=paths,
        use_download_worker=use_download_worker,
    )
    return Harness(service, http, runner, console, paths)


def request(**overrides: object) -> InstallRequest:
    values: dict[str, object] = {
        "targets": frozenset({Target.ESP32, Target.ESP32C3}),
        "version": "1.65.0",
    }
    values.update(overrides)
    return InstallRequest(**values)  # type: ignore[arg-type]


class TestPlan:
    def test_order_for_mixed_targets(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)

        plan = h.service.plan(request(), RESOLVED)

        assert [type(s) for s in plan.installables] == [
            CompilerToolchain,
            StandardLibraryBundle,
            ClangToolchain,
            TargetSupport,
            CrossGccToolchain,
        ]
        assert plan.host == HOST
        assert plan.install_root == h.paths.rustup_home / "toolchains" / "esp"

    def test_riscv_only(self, tmp_path: Path) -> None:
        plan = make_harness(tmp_path).service.plan(
            request(targets=frozenset({Target.ESP32C6})), RESOLVED
        )
        kinds = [s.kind for s in plan.installables]
        assert kinds == ["targets"]

    def test_std_skips_gcc(self, tmp_path: Path) -> None:
        plan = make_harness(tmp_path).service.plan(request(std=True), RESOLVED)
        assert "gcc" not in [s.kind for s in plan.installables]

    @pytest.mark.parametrize(
        ("targets", "std", "expected"),
        [
            ({Target.ESP32, Target.ESP32C3}, False, ["xtensa-esp-elf", "riscv32-esp-elf"]),
            ({Target.ESP32C6}, False, ["riscv32-esp-elf"]),
            ({Target.ESP32S3}, False, ["xtensa-esp-elf", "riscv32-esp-elf"]),
            ({Target.ESP32}, False, ["xtensa-esp-elf"]),
            ({Target.ESP32, Target.ESP32C3}, True, []),
        ],
    )
    def test_esp_riscv_gcc(
        self, tmp_path: Path, targets: set[Target], std: bool, expected: list[str]
    ) -> None:
        plan = make_harness(tmp_path).service.plan(
            request(targets=frozenset(targets), std=std, esp_riscv_gcc=True), RESOLVED
        )
        gccs = [s for s in plan.installables if isinstance(s, CrossGccToolchain)]
        assert [g.toolchain for g in gccs] == expected

    def test_request_host_overrides_detected_host(self, tmp_path: Path) -> None:
        plan = make_harness(tmp_path).service.plan(
            request(host=HostTriple.AARCH64_APPLE_DARWIN), RESOLVED
        )
        assert plan.host == HostTriple.AARCH64_APPLE_DARWIN
        assert all(s.host == HostTriple.AARCH64_APPLE_DARWIN for s in plan.installables)

    def test_esp_idf_last(self, tmp_path: Path) -> None:
        plan = make_harness(tmp_path).service.plan(request(esp_idf_version="v5.1"), RESOLVED)
        last = plan.installables[-1]
        assert isinstance(last, FrameworkRepo)
        assert last.targets == (Target.ESP32, Target.ESP32C3)

    def test_custom_name(self, tmp_path: Path) -> None:
        plan = make_harness(tmp_path).service.plan(request(toolchain_name="xtensa"), RESOLVED)
        assert plan.install_root.name == "xtensa"


class TestInstall:
    def test_full_install(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)

        result = h.service.install(request())

        assert isinstance(result, Ok)
        report = result.value
        assert report.plan.version == RESOLVED
        assert report.shell_errors == ()
        assert h.http.download_count == 4

        env_script = (h.root / "env").read_text(encoding="utf-8")
        assert "LIBCLANG_PATH" in env_script
        assert "xtensa-esp-elf/bin" in env_script
        assert "riscv32-esp-elf/bin" not in env_script

        line = source_line(h.root, ScriptSyntax.POSIX)
        assert h.profile.read_text(encoding="utf-8").count(line) == 1

        record = h.service.store.load()
        assert record is not None
        assert record.toolchain_version == "1.65.0.1"
        assert record.targets == ("esp32", "esp32c3")
        assert len(record.gcc_paths) == 1
        assert record.exports == report.exports

    def test_without_download_worker(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path, use_download_worker=False)

        assert isinstance(h.service.install(request()), Ok)
        assert h.http.download_count == 4

    def test_second_install_reuses_everything(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        assert isinstance(h.service.install(request()), Ok)
        # The mocked installers copy nothing; put the compiler and sources in place.
        compiler = CompilerToolchain(version=RESOLVED, host=HOST, destination=h.root)
        compiler.rustc.parent.mkdir(parents=True, exist_ok=True)
        compiler.rustc.write_text("", encoding="utf-8")
        StandardLibraryBundle(version=RESOLVED, host=HOST, destination=h.root).sources.mkdir(
            parents=True
        )
        h.runner.set_output(
            [str(compiler.rustc), "--version"], "rustc 1.65.0-nightly (abc 2022-11-01) (1.65.0.1)"
        )
        h.runner.set_output(
            TARGET_LIST,
            "riscv32imc-unknown-none-elf\nriscv32imac-unknown-none-elf\n"
            "riscv32imafc-unknown-none-elf\n",
        )
        downloads = h.http.download_count

        result = h.service.install(request())

        assert isinstance(result, Ok)
        assert h.http.download_count == downloads
        line = source_line(h.root, ScriptSyntax.POSIX)
        assert h.profile.read_text(encoding="utf-8").count(line) == 1

    def test_no_modify_env(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)

        assert isinstance(h.service.install(request(modify_env=False)), Ok)

        assert (h.root / "env").exists()
        assert not h.profile.exists()

    def test_export_file(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        export_file = tmp_path / "export-esp.sh"

        result = h.service.install(request(export_file=export_file))

        assert isinstance(result, Ok)
        assert result.value.export_file == export_file
        assert "LIBCLANG_PATH" in export_file.read_text(encoding="utf-8")

    def test_export_file_from_config(self, tmp_path: Path) -> None:
        export_file = tmp_path / "from-config.sh"
        h = make_harness(tmp_path, Config(paths=PathsConfig(export_file=str(export_file))))

        assert isinstance(h.service.install(request()), Ok)
        assert export_file.exists()

    def test_failure_stops_and_keeps_completed_steps(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        riscv = CrossGccToolchain(toolchain="riscv32-esp-elf", host=HOST, toolchain_dir=h.root)
        h.http.set_download(riscv.artifact_url, b"not an archive")

        result = h.service.install(request(esp_riscv_gcc=True))

        assert isinstance(result, Err)
        assert result.error.component == riscv.name
        assert h.service.store.load() is None
        assert not h.profile.exists()
        assert h.console.find("espenv uninstall")
        xtensa = CrossGccToolchain(toolchain="xtensa-esp-elf", host=HOST, toolchain_dir=h.root)
        assert xtensa.destination.exists()

    def test_unknown_version(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)

        result = h.service.install(request(version="1.99.0"))

        assert isinstance(result, Err)
        assert result.error.kind == "no_matching_release"
        assert h.http.download_count == 0

    def test_latest_when_no_version(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)

        resolved = h.service.resolve_version(None)

        assert isinstance(resolved, Ok)
        assert resolved.value.exact == RESOLVED

    def test_version_from_config(self, tmp_path: Path) -> None:
        from espenv.core.config import ToolchainConfig

        h = make_harness(tmp_path, Config(toolchain=ToolchainConfig(version="1.65.0.0")))

        resolved = h.service.resolve_version(None)

        assert isinstance(resolved, Ok)
        assert str(resolved.value.exact) == "1.65.0.0"

    def test_skip_version_parse_needs_exact_version(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)

        result = h.service.resolve_version("1.65.0", skip_version_parse=True)

        assert isinstance(result, Err)
        assert result.error.kind == "invalid_format"

    def test_skip_version_parse_does_not_query(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)

        result = h.service.resolve_version("1.70.0.9", skip_version_parse=True)

        assert isinstance(result, Ok)
        assert result.value.exact == ExtendedVersion(1, 70, 0, 9)
        assert h.http.calls == []


class TestUpdate:
    def test_without_record(self, tmp_path: Path) -> None:
        result = make_harness(tmp_path).service.update()

        assert isinstance(result, Err)
        assert result.error.kind == "not_installed"

    def test_reuses_recorded_targets(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        h.service.install(request(targets=frozenset({Target.ESP32C3}), version="1.65.0.0"))

        result = h.service.update()

        assert isinstance(result, Ok)
        assert result.value.plan.version == RESOLVED
        assert [s.kind for s in result.value.plan.installables] == ["targets"]

    def test_replaces_other_build_of_same_release(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        h.service.install(request(targets=frozenset({Target.ESP32}), version="1.65.0.0"))
        old = CompilerToolchain(
            version=ExtendedVersion(1, 65, 0, 0), host=HOST, destination=h.root
        )
        old.rustc.parent.mkdir(parents=True, exist_ok=True)
        old.rustc.write_text("", encoding="utf-8")
        h.runner.set_output(
            [str(old.rustc), "--version"], "rustc 1.65.0-nightly (abc 2022-11-01) (1.65.0.0)"
        )
        new = CompilerToolchain(version=RESOLVED, host=HOST, destination=h.root)

        result = h.service.update()

        assert isinstance(result, Ok)
        assert ("download", new.artifact_url) in h.http.calls
        assert not old.rustc.exists()
        record = h.service.store.load()
        assert record is not None
        assert record.toolchain_version == "1.65.0.1"

    def test_uses_recorded_host(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        host = HostTriple.AARCH64_APPLE_DARWIN
        h.service.install(request(targets=frozenset({Target.ESP32C3}), host=host))

        result = h.service.update()

        assert isinstance(result, Ok)
        assert result.value.plan.host == host
        assert result.value.record.host_triple == "aarch64-apple-darwin"

    def test_invalid_recorded_host(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        h.service.install(request(targets=frozenset({Target.ESP32C3})))
        record = h.service.store.load()
        assert record is not None
        h.service.store.save(replace(record, host_triple="sparc-sun-solaris"))
        calls = len(h.http.calls)

        result = h.service.update()

        assert isinstance(result, Err)
        assert result.error.kind == "not_installed"
        assert len(h.http.calls) == calls


class TestUninstall:
    def test_without_record(self, tmp_path: Path) -> None:
        result = make_harness(tmp_path).service.uninstall()

        assert isinstance(result, Err)
        assert result.error.kind == "not_installed"

    def test_removes_everything(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        export_file = tmp_path / "export-esp.sh"
        h.service.install(request(export_file=export_file))
        h.profile.write_text("export KEEP=1\n" + h.profile.read_text(encoding="utf-8"), encoding="utf-8")

        result = h.service.uninstall()

        assert isinstance(result, Ok)
        assert result.value.errors == []
        assert len(result.value.removed) == 5
        assert not h.root.exists()
        assert not export_file.exists()
        assert h.profile.read_text(encoding="utf-8") == "export KEEP=1\n"
        assert h.service.store.load() is None

    def test_failing_component_keeps_record(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        h.service.install(request())
        h.runner.set_output(TARGET_LIST, "riscv32imc-unknown-none-elf\n")
        h.runner.set_failure(["rustup", "target", "remove"])

        result = h.service.uninstall()

        assert isinstance(result, Ok)
        assert len(result.value.errors) == 1
        assert len(result.value.removed) == 4
        assert h.service.store.load() is not None
        assert h.console.has_error()

    def test_riscv_only_removes_environment_scripts(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        h.service.install(request(targets=frozenset({Target.ESP32C3})))
        assert (h.root / "env").exists()

        result = h.service.uninstall()

        assert isinstance(result, Ok)
        assert result.value.errors == []
        assert not h.root.exists()
        assert h.service.store.load() is None

    def test_removes_components_of_recorded_host(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        host = HostTriple.AARCH64_LINUX_GNU
        nightly = TargetSupport(
            nightly_version="nightly", host=host, rustup_home=h.paths.rustup_home
        )
        h.service.install(request(targets=frozenset({Target.ESP32C3}), host=host))
        h.runner.set_output(TARGET_LIST, "riscv32imc-unknown-none-elf\n")
        h.runner.set_failure(["rustup", "target", "remove"])

        result = h.service.uninstall()

        assert isinstance(result, Ok)
        assert len(result.value.errors) == 1
        assert result.value.errors[0].path == nightly.destination

    def test_invalid_recorded_target(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)
        h.service.install(request(targets=frozenset({Target.ESP32C3})))
        record = h.service.store.load()
        assert record is not None
        h.service.store.save(replace(record, targets=("esp8266",)))

        result = h.service.uninstall()

        assert isinstance(result, Err)
        assert result.error.kind == "not_installed"
        assert h.service.store.load() is not None


class TestDryRun:
    @pytest.mark.parametrize(
        ("version", "expected"),
        [("1.65.0.1", "1.65.0.1"), ("1.65.0", "newest build of 1.65.0"), (None, "latest")],
    )
    def test_prints_plan_without_network(
        self, tmp_path: Path, version: str | None, expected: str
    ) -> None:
        h = make_harness(tmp_path)

        plan = h.service.dry_run(request(version=version))

        assert plan is not None
        assert h.http.calls == []
        assert h.console.find(expected)
        assert not h.root.exists()

    def test_invalid_version(self, tmp_path: Path) -> None:
        h = make_harness(tmp_path)

        assert h.service.dry_run(request(version="1.65")) is None
        assert h.console.has_error()
