"""Tests for tools/github.py - release index."""

from espenv.core.config import DEFAULT_RELEASES_URL
from espenv.core.result import Err, Ok
from espenv.tools.github import GitHubReleaseIndex, parse_releases, release_download_url
from espenv.tools.http import HttpError, MockHttpClient

INDEX_URL = f"{DEFAULT_RELEASES_URL}?per_page=100"


class TestParseReleases:
    def test_tags_and_assets(self) -> None:
        data = [
            {"tag_name": "v1.74.0.1", "assets": [{"name": "rust-1.74.0.1-x86_64.tar.xz"}]},
            {"tag_name": "v1.74.0.0"},
        ]

        releases = parse_releases(data)

        assert releases is not None
        assert [r.tag for r in releases] == ["v1.74.0.1", "v1.74.0.0"]
        assert releases[0].assets == ("rust-1.74.0.1-x86_64.tar.xz",)

    def test_entries_without_tag_are_skipped(self) -> None:
        releases = parse_releases([{"name": "draft"}, "junk", {"tag_name": "v1.0.0.0"}])
        assert releases is not None
        assert len(releases) == 1

    def test_wrong_shape(self) -> None:
        assert parse_releases({"message": "rate limited"}) is None


class TestGitHubReleaseIndex:
    def test_url_adds_page_size(self) -> None:
        index = GitHubReleaseIndex(MockHttpClient())
        assert index.url == INDEX_URL

    def test_url_with_existing_query(self) -> None:
        index = GitHubReleaseIndex(MockHttpClient(), "https://mirror/releases?x=1", per_page=5)
        assert index.url == "https://mirror/releases?x=1&per_page=5"

    def test_releases(self) -> None:
        http = MockHttpClient()
        http.set_json(INDEX_URL, [{"tag_name": "v1.65.0.1"}])

        result = GitHubReleaseIndex(http).releases()

        assert isinstance(result, Ok)
        assert result.value[0].version is not None
        assert str(result.value[0].version) == "1.65.0.1"

    def test_http_error_propagates(self) -> None:
        http = MockHttpClient()
        http.set_json(INDEX_URL, HttpError(INDEX_URL, 403, "rate limit exceeded"))

        result = GitHubReleaseIndex(http).releases()

        assert isinstance(result, Err)
        assert result.error.status == 403

    def test_server_error_is_retried(self) -> None:
        http = MockHttpClient()
        http.set_json(INDEX_URL, [{"tag_name": "v1.65.0.1"}])
        http.fail_next(INDEX_URL, HttpError(INDEX_URL, 502, "Bad Gateway"))
        delays: list[float] = []

        result = GitHubReleaseIndex(http, sleep=delays.append).releases()

        assert isinstance(result, Ok)
        assert len(result.value) == 1
        assert delays == [0.1]
        assert http.calls.count(("get_json", INDEX_URL)) == 2

    def test_gives_up_after_five_attempts(self) -> None:
        http = MockHttpClient()
        http.set_json(INDEX_URL, HttpError(INDEX_URL, 0, "Connection reset"))

        result = GitHubReleaseIndex(http, sleep=lambda _s: None).releases()

        assert isinstance(result, Err)
        assert len(http.calls) == 5

    def test_rate_limit_is_not_retried(self) -> None:
        http = MockHttpClient()
        http.set_json(INDEX_URL, HttpError(INDEX_URL, 403, "rate limit exceeded"))
        delays: list[float] = []

        result = GitHubReleaseIndex(http, sleep=delays.append).releases()

        assert isinstance(result, Err)
        assert delays == []
        assert len(http.calls) == 1

    def test_unexpected_payload(self) -> None:
        http = MockHttpClient()
        http.set_json(INDEX_URL, {"message": "Not Found"})

        result = GitHubReleaseIndex(http).releases()

        assert isinstance(result, Err)
        assert "JSON array" in result.error.message


def test_release_download_url() -> None:
    assert release_download_url("1.74.0.1", "rust-src.tar.xz") == (
        "https://github.com/esp-rs/rust-build/releases/download/v1.74.0.1/rust-src.tar.xz"
    )
    assert release_download_url("v1.74.0.1", "a").endswith("/v1.74.0.1/a")
