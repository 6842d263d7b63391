"""GitHub release index for the Xtensa Rust toolchain builds."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from espenv.core.config import DEFAULT_RELEASES_URL
from espenv.core.result import Err, Ok, Result
from espenv.core.structured import as_obj_list, as_str_dict, get_str
from espenv.core.version import Release
from espenv.tools.http import HttpError, retry_transient

if TYPE_CHECKING:
    from collections.abc import Callable

    from espenv.tools.http import HttpClient

__all__ = ["GitHubReleaseIndex", "parse_releases", "release_download_url"]

RUST_BUILD_DOWNLOADS = "https://github.com/esp-rs/rust-build/releases/download"


def release_download_url(tag: str, asset: str) -> str:
    """``.../releases/download/v1.74.0.0/<asset>``."""
    return f"{RUST_BUILD_DOWNLOADS}/v{tag.removeprefix('v')}/{asset}"


def parse_releases(data: object) -> list[Release] | None:
    """Releases from the API's JSON array; None if the shape is wrong.

    Entries without a ``tag_name`` are skipped.
    """
    entries = as_obj_list(data)
    if entries is None:
        return None

    releases: list[Release] = []
    for entry_obj in entries:
        entry = as_str_dict(entry_obj)
        if entry is None:
            continue
        tag = get_str(entry, "tag_name")
        if tag is None:
            continue

        assets: list[str] = []
        for asset_obj in as_obj_list(entry.get("assets")) or []:
            asset = as_str_dict(asset_obj)
            name = get_str(asset, "name") if asset is not None else None
            if name is not None:
                assets.append(name)
        releases.append(Release(tag=tag, assets=tuple(assets)))
    return releases


class GitHubReleaseIndex:
    """``ReleaseIndex`` backed by the GitHub releases API.

    The list is fetched on every call; resolution always sees the current
    upstream state. Network and server errors are retried a few times.
    """

    def __init__(
        self,
        http: HttpClient,
        url: str = DEFAULT_RELEASES_URL,
        *,
        per_page: int = 100,
        retry_attempts: int = 5,
        retry_delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http = http
        self._url = url
        self._per_page = per_page
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._sleep = sleep

    @property
    def url(self) -> str:
        separator = "&" if "?" in self._url else "?"
        return f"{self._url}{separator}per_page={self._per_page}"

    def releases(self) -> Result[list[Release], HttpError]:
        url = self.url
        result = retry_transient(
            lambda: self._http.get_json(url),
            attempts=self._retry_attempts,
            delay=self._retry_delay,
            sleep=self._sleep,
        )
        if isinstance(result, Err):
            return result

        releases = parse_releases(result.value)
        if releases is None:
            return Err(HttpError(url=url, status=0, message="Expected a JSON array of releases"))
        return Ok(releases)
