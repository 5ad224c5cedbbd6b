import pytest

from tootsnap.errors import LinkUnparseableError
from tootsnap.input import host_of, normalize_host, parse_post_url


def test_parse_post_url_accepts_common_mastodon_paths() -> None:
    assert parse_post_url("https://mastodon.social/@alice/111").status_id == "111"
    assert parse_post_url("https://mastodon.social/web/@alice/222").status_id == "222"
    assert parse_post_url("https://example.com/@bob@other.host/333").status_id == "333"
    assert parse_post_url("https://example.com/users/bob/statuses/444").status_id == "444"


def test_parse_post_url_builds_api_urls() -> None:
    locator = parse_post_url("https://Example.COM:8443/@alice/123?ref=share")

    assert locator.host == "example.com:8443"
    assert locator.status_url == "https://example.com:8443/api/v1/statuses/123"
    assert locator.context_url == "https://example.com:8443/api/v1/statuses/123/context"


def test_parse_post_url_rejects_invalid_links() -> None:
    with pytest.raises(LinkUnparseableError):
        parse_post_url("ftp://example.com/@alice/123")

    with pytest.raises(LinkUnparseableError):
        parse_post_url("https://example.com/about")

    with pytest.raises(LinkUnparseableError):
        parse_post_url("https://example.com/@alice/12-34")

    with pytest.raises(LinkUnparseableError):
        parse_post_url("not a url")


def test_host_helpers_normalize_user_input() -> None:
    assert host_of("https://Mastodon.Social/@a/1") == "mastodon.social"
    assert normalize_host("  https://Fosstodon.org/explore ") == "fosstodon.org"
    assert normalize_host("hachyderm.io") == "hachyderm.io"

    with pytest.raises(LinkUnparseableError):
        normalize_host("https://")
