from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path

import pytest


@dataclass(frozen=True, slots=True)
class ImportRef:
    module: str
    line: int


def package_root() -> Path:
    return Path(__file__).resolve().parents[2]


def iter_source_files(base: Path) -> list[Path]:
    root = package_root()
    files: list[Path] = []
    for path in sorted(base.rglob("*.py")):
        rel = path.relative_to(root)
        if rel.parts[0] == "test" or "__pycache__" in rel.parts:
            continue
        files.append(path)
    return files


def read_tree(path: Path) -> ast.AST:
    return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))


def parse_imports(path: Path) -> list[ImportRef]:
    imports: list[ImportRef] = []
    for node in ast.walk(read_tree(path)):
        if isinstance(node, ast.Import):
            imports.extend(ImportRef(alias.name, node.lineno) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and not node.level and node.module:
            imports.append(ImportRef(node.module, node.lineno))
    return imports


def matches_prefix(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(prefix + ".")


def forbidden_imports(layer: str, forbidden: tuple[str, ...]) -> list[str]:
    root = package_root()
    offenders: list[str] = []
    for file_path in iter_source_files(root / layer):
        rel = file_path.relative_to(root)
        for item in parse_imports(file_path):
            if any(matches_prefix(item.module, f"espenv.{f}") for f in forbidden):
                offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")
    return offenders


LAYERS = {
    "core": ("platform", "output", "tools", "toolchain", "env", "services", "cli"),
    "platform": ("output", "tools", "toolchain", "env", "services", "cli"),
    "output": ("tools", "toolchain", "env", "services", "cli"),
    "tools": ("toolchain", "env", "services", "cli"),
    "toolchain": ("env", "services", "cli"),
    "env": ("services", "cli"),
    "services": ("cli",),
}


@pytest.mark.parametrize("layer", sorted(LAYERS))
def test_layer_does_not_import_upper_layers(layer: str) -> None:
    offenders = forbidden_imports(layer, LAYERS[layer])
    assert not offenders, f"{layer} dependency violations:\n" + "\n".join(offenders)


def test_rich_is_only_imported_by_the_console() -> None:
    root = package_root()
    offenders = [
        f"{file_path.relative_to(root)}:{item.line}: direct rich import '{item.module}'"
        for file_path in iter_source_files(root)
        if file_path.relative_to(root).as_posix() != "output/console.py"
        for item in parse_imports(file_path)
        if matches_prefix(item.module, "rich")
    ]
    assert not offenders, "Direct rich usage:\n" + "\n".join(offenders)


def _direct_subprocess_calls(tree: ast.AST) -> list[int]:
    lines: list[int] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
            continue
        func = node.func
        if func.attr not in {"run", "check_output", "Popen", "call"}:
            continue
        if isinstance(func.value, ast.Name) and func.value.id == "subprocess":
            lines.append(node.lineno)
    return lines


def test_subprocess_is_only_called_from_platform_process() -> None:
    root = package_root()
    offenders: list[str] = []
    for file_path in iter_source_files(root):
        rel = file_path.relative_to(root)
        if rel.as_posix() == "platform/process.py":
            continue
        offenders.extend(f"{rel}:{line}" for line in _direct_subprocess_calls(read_tree(file_path)))
    assert not offenders, "Direct subprocess calls:\n" + "\n".join(offenders)
