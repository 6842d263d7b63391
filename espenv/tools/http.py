"""HTTP client abstraction for release queries and artifact downloads.

This module provides:
- HttpClient: Protocol for HTTP operations (injectable for tests)
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Mock implementation for testing
"""

from __future__ import annotations

import json
import os
import ssl
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from espenv import __version__
from espenv.core.result import Err, Ok, Result

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = [
    "HttpClient",
    "RealHttpClient",
    "MockHttpClient",
    "HttpError",
    "error_from_reply",
    "retry_transient",
]

_CHUNK_SIZE = 64 * 1024

# GitHub links its rate limit docs from every rate limited reply.
_RATE_LIMIT_MARKERS = ("rate-limit", "rate limit")


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"

    @property
    def transient(self) -> bool:
        """Network failures and server errors; worth another attempt."""
        return self.status == 0 or self.status >= 500


def error_from_reply(url: str, status: int, reason: str, body: str = "") -> HttpError:
    """HttpError for an error reply, naming GitHub rate limits and rejected tokens."""
    lowered = body.lower()
    if status in (403, 429) and any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
        return HttpError(
            url=url,
            status=status,
            message="GitHub API rate limit exceeded, set GITHUB_TOKEN to raise it",
        )
    if status == 401 and "bad credentials" in lowered:
        return HttpError(
            url=url,
            status=status,
            message="GitHub rejected the token (bad credentials), check GITHUB_TOKEN",
        )
    return HttpError(url=url, status=status, message=reason)


def retry_transient[T](
    call: Callable[[], Result[T, HttpError]],
    *,
    attempts: int,
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[HttpError], None] | None = None,
) -> Result[T, HttpError]:
    """Run ``call`` up to ``attempts`` times while it fails with a transient error.

    The wait grows with each attempt: ``delay``, ``2 * delay``, ... Client
    errors (404, rate limits, bad credentials) are returned at once.
    """
    for attempt in range(max(1, attempts) - 1):
        result = call()
        if isinstance(result, Ok) or not result.error.transient:
            return result
        if on_retry is not None:
            on_retry(result.error)
        sleep(delay * (attempt + 1))
    return call()


def _error_body(error: urllib.error.HTTPError) -> str:
    try:
        return error.read().decode("utf-8", errors="replace")
    except OSError:
        return ""


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP operations.

    This abstraction allows injecting mock clients for testing,
    avoiding real network calls in unit tests.
    """

    def get_json(self, url: str) -> Result[object, HttpError]:
        """Fetch URL and parse the body as JSON (object or array)."""
        ...

    def download(
        self,
        url: str,
        dest: Path,
        progress: Callable[[int, int], None] | None = None,
    ) -> Result[Path, HttpError]:
        """Download URL to ``dest``.

        Args:
            url: URL to download
            dest: Destination path
            progress: Optional callback(downloaded, total) for progress

        Returns:
            Ok with dest path, or Err with HttpError
        """
        ...


class RealHttpClient:
    """Real HTTP client using urllib.

    Handles:
    - HTTPS with system certificates
    - GitHub API authentication through ``GITHUB_TOKEN``
    - Download with progress callback
    - Timeout handling
    """

    def __init__(
        self,
        timeout: float = 60.0,
        user_agent: str = f"espenv/{__version__}",
        token: str | None = None,
    ) -> None:
        """Initialize HTTP client.

        Args:
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            token: GitHub token; defaults to ``$GITHUB_TOKEN``
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.token = token if token is not None else os.environ.get("GITHUB_TOKEN")
        self._ssl_context = ssl.create_default_context()

    def _headers(self, url: str) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if url.startswith("https://api.github.com/"):
            headers["Accept"] = "application/vnd.github+json"
            headers["X-GitHub-Api-Version"] = "2022-11-28"
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, url: str) -> Result[bytes, HttpError]:
        try:
            req = urllib.request.Request(url, headers=self._headers(url))
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(error_from_reply(url, e.code, str(e.reason), _error_body(e)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def get_json(self, url: str) -> Result[object, HttpError]:
        """Fetch URL and parse as JSON."""
        result = self._request(url)
        if isinstance(result, Err):
            return result

        try:
            data: object = json.loads(result.value.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))
        return Ok(data)

    def download(
        self,
        url: str,
        dest: Path,
        progress: Callable[[int, int], None] | None = None,
    ) -> Result[Path, HttpError]:
        """Download URL to file with optional progress callback."""
        try:
            req = urllib.request.Request(url, headers=self._headers(url))
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                total = int(response.headers.get("Content-Length", 0))
                downloaded = 0

                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(dest, "wb") as f:
                    while chunk := response.read(_CHUNK_SIZE):
                        f.write(chunk)
                        downloaded += len(chunk)
                        if progress:
                            progress(downloaded, total)

                return Ok(dest)

        except urllib.error.HTTPError as e:
            return Err(error_from_reply(url, e.code, str(e.reason), _error_body(e)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Download timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_json(RELEASES_URL, [{"tag_name": "v1.74.0.0"}])
        client.set_download(url, archive_bytes)
        ...
        assert client.download_count == 0
    """

    def __init__(self) -> None:
        self._json_responses: dict[str, object | HttpError] = {}
        self._download_responses: dict[str, bytes | HttpError] = {}
        self._failures: dict[str, list[HttpError]] = {}
        self.calls: list[tuple[str, str]] = []

    def set_json(self, url: str, response: object | HttpError) -> None:
        """Set JSON response for URL."""
        self._json_responses[url] = response

    def set_download(self, url: str, response: bytes | HttpError) -> None:
        """Set download content for URL."""
        self._download_responses[url] = response

    def fail_next(self, url: str, error: HttpError, times: int = 1) -> None:
        """Fail the next ``times`` requests for URL before the set response applies."""
        self._failures.setdefault(url, []).extend([error] * times)

    def _queued_failure(self, url: str) -> HttpError | None:
        queued = self._failures.get(url)
        return queued.pop(0) if queued else None

    @property
    def download_count(self) -> int:
        return sum(1 for kind, _ in self.calls if kind == "download")

    def get_json(self, url: str) -> Result[object, HttpError]:
        self.calls.append(("get_json", url))
        if (failure := self._queued_failure(url)) is not None:
            return Err(failure)

        if url not in self._json_responses:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))

        response = self._json_responses[url]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def download(
        self,
        url: str,
        dest: Path,
        progress: Callable[[int, int], None] | None = None,
    ) -> Result[Path, HttpError]:
        """Mock download - writes predefined content to dest."""
        self.calls.append(("download", url))
        if (failure := self._queued_failure(url)) is not None:
            return Err(failure)

        if url not in self._download_responses:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))

        response = self._download_responses[url]
        if isinstance(response, HttpError):
            return Err(response)

        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(response)
        if progress:
            progress(len(response), len(response))
        return Ok(dest)
