"""Archive extraction.

Toolchain artifacts ship as ``.tar.xz`` (Unix), ``.zip`` (Windows) and
occasionally ``.tar.gz``. ``ArchiveExtractor``:
- picks the format from the file name
- refuses members that would land outside the destination
- keeps Unix permission bits (``install.sh`` must stay executable)
- recreates relative symlinks that stay inside the destination
  (LLVM ships ``libclang.so -> libclang.so.16``)
"""

from __future__ import annotations

import contextlib
import os
import shutil
import stat
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from espenv.core.result import Err, Ok, Result

__all__ = ["ArchiveExtractor", "ArchiveError", "ExtractResult", "archive_format"]

_FORMATS: tuple[tuple[tuple[str, ...], str], ...] = (
    ((".tar.gz", ".tgz"), "gz"),
    ((".tar.xz", ".txz"), "xz"),
    ((".zip",), "zip"),
)


@dataclass(frozen=True, slots=True)
class ArchiveError:
    """Extraction failure.

    Attributes:
        archive: Path to the archive that failed
        message: Human-readable error message
        unsupported: True when the file name has no known archive extension
    """

    archive: Path
    message: str
    unsupported: bool = False

    def __str__(self) -> str:
        return f"{self.message}: {self.archive}"


@dataclass(frozen=True, slots=True)
class ExtractResult:
    destination: Path
    files_count: int


def archive_format(name: str) -> str | None:
    """``"gz"``, ``"xz"`` or ``"zip"`` for a file name, None if unknown."""
    # Path.suffixes splits on every dot, which misreads "llvm-esp-16.0.4-...tar.xz".
    lowered = name.lower()
    for suffixes, fmt in _FORMATS:
        if lowered.endswith(suffixes):
            return fmt
    return None


class ArchiveExtractor:
    """Extracts tar.gz, tar.xz and zip archives into a directory.

    Existing files in the destination are overwritten, other files are left
    alone; callers remove stale installations beforehand.
    """

    def extract(
        self,
        archive: Path,
        destination: Path,
        *,
        strip_components: int = 0,
    ) -> Result[ExtractResult, ArchiveError]:
        fmt = archive_format(archive.name)
        if fmt is None:
            return Err(
                ArchiveError(
                    archive=archive,
                    message="Unsupported archive format",
                    unsupported=True,
                )
            )
        if not archive.exists():
            return Err(ArchiveError(archive=archive, message="Archive not found"))

        if fmt == "zip":
            return self._extract_zip(archive, destination, strip_components)
        return self._extract_tar(archive, destination, strip_components, fmt)

    def _safe_relative_path(self, member_name: str, strip_components: int) -> Path | None:
        """Sanitized relative extraction path, or None if unsafe."""
        normalized = member_name.replace("\\", "/")
        if normalized.startswith("/"):
            return None

        parts = PurePosixPath(normalized).parts
        if len(parts) <= strip_components:
            return None

        kept = parts[strip_components:]
        if any(part in {"", ".", ".."} for part in kept):
            return None
        if kept[0].endswith(":"):
            return None

        return Path(*kept)

    def _is_within_root(self, root: Path, target: Path) -> bool:
        try:
            return target.resolve().is_relative_to(root)
        except OSError:
            return False

    def _extract_tar(
        self,
        archive: Path,
        destination: Path,
        strip_components: int,
        compression: str,
    ) -> Result[ExtractResult, ArchiveError]:
        try:
            destination.mkdir(parents=True, exist_ok=True)
            root = destination.resolve()
            files_count = 0
            links: list[tuple[Path, str]] = []

            with tarfile.open(archive, f"r:{compression}") as tar:
                for member in tar.getmembers():
                    if member.isdir():
                        continue

                    rel_path = self._safe_relative_path(member.name, strip_components)
                    if rel_path is None:
                        continue
                    full_path = destination / rel_path
                    if not self._is_within_root(root, full_path):
                        continue

                    if member.issym():
                        links.append((full_path, member.linkname))
                        continue
                    # Hardlinks, devices and fifos are never part of a toolchain.
                    if not member.isreg():
                        continue

                    src = tar.extractfile(member)
                    if src is None:
                        continue

                    full_path.parent.mkdir(parents=True, exist_ok=True)
                    if full_path.is_symlink():
                        full_path.unlink()
                    with src, open(full_path, "wb") as dst:
                        shutil.copyfileobj(src, dst)

                    mode = member.mode & 0o777
                    if mode:
                        with contextlib.suppress(OSError):
                            os.chmod(full_path, mode)
                    files_count += 1

            # Links last, so their targets exist when containment is checked.
            for link_path, target in links:
                files_count += self._make_link(root, link_path, target)

            return Ok(ExtractResult(destination=destination, files_count=files_count))

        except tarfile.TarError as e:
            return Err(ArchiveError(archive=archive, message=f"Tar extraction failed: {e}"))
        except OSError as e:
            return Err(ArchiveError(archive=archive, message=f"IO error: {e}"))

    def _make_link(self, root: Path, link_path: Path, target: str) -> int:
        if target.startswith("/") or "\\" in target:
            return 0
        if not self._is_within_root(root, link_path.parent / target):
            return 0
        link_path.parent.mkdir(parents=True, exist_ok=True)
        if link_path.is_symlink() or link_path.exists():
            link_path.unlink()
        try:
            link_path.symlink_to(target)
        except OSError:
            # Symlinks need privileges on Windows; fall back to a copy.
            resolved = link_path.parent / target
            if not resolved.is_file():
                return 0
            shutil.copy2(resolved, link_path)
        return 1

    def _extract_zip(
        self,
        archive: Path,
        destination: Path,
        strip_components: int,
    ) -> Result[ExtractResult, ArchiveError]:
        try:
            destination.mkdir(parents=True, exist_ok=True)
            root = destination.resolve()
            files_count = 0

            with zipfile.ZipFile(archive, "r") as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue

                    rel_path = self._safe_relative_path(info.filename, strip_components)
                    if rel_path is None:
                        continue

                    unix_attrs = info.external_attr >> 16
                    if (unix_attrs & 0o170000) == stat.S_IFLNK:
                        continue

                    full_path = destination / rel_path
                    if not self._is_within_root(root, full_path):
                        continue

                    full_path.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src, open(full_path, "wb") as dst:
                        shutil.copyfileobj(src, dst)

                    if unix_attrs & 0o777:
                        with contextlib.suppress(OSError):
                            full_path.chmod(unix_attrs & 0o777)
                    files_count += 1

            return Ok(ExtractResult(destination=destination, files_count=files_count))

        except zipfile.BadZipFile as e:
            return Err(ArchiveError(archive=archive, message=f"Invalid zip file: {e}"))
        except OSError as e:
            return Err(ArchiveError(archive=archive, message=f"IO error: {e}"))
