"""Toolchain version resolution.

Upstream publishes several builds of one compiler release, told apart by a
fourth "subpatch" component (``1.74.0.0``, ``1.74.0.1``). Users usually ask
for the three-component form, meaning "the newest build of that release".

``VersionResolver`` turns such a loose request into an exact release:

- ``M.m.p``   -> highest subpatch among releases tagged ``M.m.p.*``
- ``M.m.p.s`` -> that exact release, if it exists
- anything else is rejected before any network access
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Protocol

from .errors import VersionError
from .result import Err, Ok, Result

__all__ = [
    "ExtendedVersion",
    "Release",
    "ReleaseIndex",
    "ResolvedVersion",
    "VersionResolver",
    "parse_extended",
]

RE_SEMANTIC_VERSION = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)$"
)
RE_EXTENDED_SEMANTIC_VERSION = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"\.(?P<subpatch>0|[1-9]\d*)$"
)

_FORMAT_HINT = "Use '<major>.<minor>.<patch>' or '<major>.<minor>.<patch>.<subpatch>'"


@total_ordering
@dataclass(frozen=True, slots=True)
class ExtendedVersion:
    """Four-component toolchain version, compared numerically."""

    major: int
    minor: int
    patch: int
    subpatch: int

    @property
    def base(self) -> str:
        """The ``major.minor.patch`` part, as reported by the compiler."""
        return f"{self.major}.{self.minor}.{self.patch}"

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.major, self.minor, self.patch, self.subpatch)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ExtendedVersion):
            return NotImplemented
        return self.as_tuple() < other.as_tuple()

    def __str__(self) -> str:
        return f"{self.base}.{self.subpatch}"


def parse_extended(text: str) -> ExtendedVersion | None:
    """Parse ``M.m.p.s`` (an optional leading ``v`` is accepted)."""
    match = RE_EXTENDED_SEMANTIC_VERSION.match(text.strip().removeprefix("v"))
    if match is None:
        return None
    return ExtendedVersion(
        major=int(match["major"]),
        minor=int(match["minor"]),
        patch=int(match["patch"]),
        subpatch=int(match["subpatch"]),
    )


@dataclass(frozen=True, slots=True)
class Release:
    """One entry of the upstream release index."""

    tag: str
    assets: tuple[str, ...] = ()

    @property
    def version(self) -> ExtendedVersion | None:
        """Parsed tag, or None for tags that are not extended versions."""
        return parse_extended(self.tag)


@dataclass(frozen=True, slots=True)
class ResolvedVersion:
    requested: str
    exact: ExtendedVersion

    def __str__(self) -> str:
        return str(self.exact)


class ReleaseIndex(Protocol):
    """Source of the release list (GitHub in production, a list in tests)."""

    def releases(self) -> Result[list[Release], object]: ...


class VersionResolver:
    """Pins a user-supplied version string to an exact upstream release.

    The index is fetched on every call; nothing is cached between runs.
    """

    def __init__(self, index: ReleaseIndex) -> None:
        self._index = index

    def resolve(self, requested: str) -> Result[ResolvedVersion, VersionError]:
        requested = requested.strip()

        if RE_SEMANTIC_VERSION.match(requested):
            return self._resolve_latest_build(requested)

        exact = parse_extended(requested) if RE_EXTENDED_SEMANTIC_VERSION.match(requested) else None
        if exact is not None:
            return self._resolve_exact(requested, exact)

        return Err(
            VersionError(
                kind="invalid_format",
                requested=requested,
                message="Invalid toolchain version",
                hint=_FORMAT_HINT,
            )
        )

    def latest(self) -> Result[ResolvedVersion, VersionError]:
        """Newest release in the index (used when no version is requested)."""
        versions = self._fetch_versions("latest")
        if isinstance(versions, Err):
            return versions
        if not versions.value:
            return Err(
                VersionError(
                    kind="no_matching_release",
                    requested="latest",
                    message="Release index contains no toolchain release",
                )
            )
        return Ok(ResolvedVersion(requested="latest", exact=max(versions.value)))

    def _resolve_latest_build(self, requested: str) -> Result[ResolvedVersion, VersionError]:
        versions = self._fetch_versions(requested)
        if isinstance(versions, Err):
            return versions

        candidates = [v for v in versions.value if v.base == requested]
        if not candidates:
            return Err(self._no_match(requested))

        best = max(candidates, key=lambda v: v.subpatch)
        return Ok(ResolvedVersion(requested=requested, exact=best))

    def _resolve_exact(
        self, requested: str, exact: ExtendedVersion
    ) -> Result[ResolvedVersion, VersionError]:
        versions = self._fetch_versions(requested)
        if isinstance(versions, Err):
            return versions

        if exact not in versions.value:
            return Err(self._no_match(requested))
        return Ok(ResolvedVersion(requested=requested, exact=exact))

    def _fetch_versions(self, requested: str) -> Result[list[ExtendedVersion], VersionError]:
        result = self._index.releases()
        if isinstance(result, Err):
            return Err(
                VersionError(
                    kind="index_unavailable",
                    requested=requested,
                    message=f"Could not fetch release index ({result.error})",
                    hint="Set GITHUB_TOKEN if the GitHub API rate limit was hit",
                )
            )
        # Tags that are not extended versions (e.g. "nightly") are ignored.
        return Ok([v for v in (r.version for r in result.value) if v is not None])

    @staticmethod
    def _no_match(requested: str) -> VersionError:
        return VersionError(
            kind="no_matching_release",
            requested=requested,
            message="No release matches toolchain version",
            hint="See https://github.com/esp-rs/rust-build/releases",
        )
