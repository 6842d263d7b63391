"""Network and archive tooling for toolchain artifacts."""

from .archive import ArchiveError, ArchiveExtractor, ExtractResult
from .fetch import ArtifactFetcher
from .github import GitHubReleaseIndex
from .http import HttpClient, HttpError, MockHttpClient, RealHttpClient

__all__ = [
    "ArchiveError",
    "ArchiveExtractor",
    "ArtifactFetcher",
    "ExtractResult",
    "GitHubReleaseIndex",
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
]
