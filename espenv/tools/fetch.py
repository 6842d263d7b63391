"""Download-and-extract for toolchain artifacts.

Artifacts are large and used once, so nothing is cached on disk: each one is
downloaded into a private temporary directory, extracted to its destination
and the temporary directory is removed.
"""

from __future__ import annotations

import tempfile
import time
from concurrent.futures import Executor
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from espenv.core.errors import InstallError
from espenv.core.result import Err, Ok, Result
from espenv.tools.archive import ArchiveExtractor, ExtractResult, archive_format
from espenv.tools.http import retry_transient

if TYPE_CHECKING:
    from collections.abc import Callable

    from espenv.output.console import ConsoleProtocol
    from espenv.tools.http import HttpClient, HttpError

__all__ = ["ArtifactFetcher", "artifact_name"]


def artifact_name(url: str) -> str:
    """File name component of an artifact URL."""
    return Path(urlparse(url).path).name or "download"


class ArtifactFetcher:
    """Downloads an archive and unpacks it.

    When an executor is given the download runs on one of its workers and the
    caller blocks on the future; installs stay strictly sequential either way.
    Network and server errors are retried, with a warning per retry.

    Usage:
        fetcher = ArtifactFetcher(http, console=console)
        result = fetcher.fetch_and_extract(url, dest, component="xtensa-esp-elf")
    """

    def __init__(
        self,
        http: HttpClient,
        *,
        console: ConsoleProtocol | None = None,
        extractor: ArchiveExtractor | None = None,
        executor: Executor | None = None,
        retry_attempts: int = 3,
        retry_delay: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http = http
        self._console = console
        self._extractor = extractor or ArchiveExtractor()
        self._executor = executor
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._sleep = sleep

    def fetch_and_extract(
        self,
        url: str,
        destination: Path,
        *,
        component: str,
        strip_components: int = 0,
    ) -> Result[ExtractResult, InstallError]:
        name = artifact_name(url)
        if archive_format(name) is None:
            return Err(
                InstallError(
                    kind="unsupported_archive_format",
                    component=component,
                    path=Path(name),
                    message=f"Unsupported archive format for {url}",
                )
            )

        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(
                InstallError(
                    kind="create_directory",
                    component=component,
                    path=destination,
                    message=f"Cannot create directory: {e}",
                )
            )

        try:
            with tempfile.TemporaryDirectory(prefix="espenv-") as tmp:
                archive = Path(tmp) / name
                if self._console is not None:
                    self._console.debug(f"Downloading {url}")

                downloaded = self._download(url, archive)
                if isinstance(downloaded, Err):
                    return Err(
                        InstallError(
                            kind="fetch",
                            component=component,
                            path=destination,
                            message=f"Download failed: {downloaded.error}",
                        )
                    )

                extracted = self._extractor.extract(
                    archive, destination, strip_components=strip_components
                )
                if isinstance(extracted, Err):
                    return Err(
                        InstallError(
                            kind="unsupported_archive_format"
                            if extracted.error.unsupported
                            else "fetch",
                            component=component,
                            path=destination,
                            message=f"Extraction failed: {extracted.error.message}",
                        )
                    )
                if self._console is not None:
                    self._console.debug(
                        f"Extracted {extracted.value.files_count} files to {destination}"
                    )
                return Ok(extracted.value)
        except OSError as e:
            return Err(
                InstallError(
                    kind="create_directory",
                    component=component,
                    path=destination,
                    message=f"Temporary directory error: {e}",
                )
            )

    def _download(self, url: str, dest: Path) -> Result[Path, HttpError]:
        return retry_transient(
            lambda: self._download_once(url, dest),
            attempts=self._retry_attempts,
            delay=self._retry_delay,
            sleep=self._sleep,
            on_retry=self._warn_retry,
        )

    def _warn_retry(self, error: HttpError) -> None:
        if self._console is not None:
            self._console.warning(f"Download failed, retrying: {error}")

    def _download_once(self, url: str, dest: Path) -> Result[Path, HttpError]:
        if self._executor is None:
            return self._http.download(url, dest)
        return self._executor.submit(self._http.download, url, dest).result()
