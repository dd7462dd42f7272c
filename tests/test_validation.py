"""URL and custom code validation tests."""

import pytest

from shortener.validation import is_private_target, is_valid_custom_code, is_valid_url


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com",
        "http://example.com/path?q=1&r=two",
        "https://sub.domain.example.org:8443/a/b#frag",
    ],
)
def test_accepts_public_http_urls(url: str) -> None:
    assert is_valid_url(url)


@pytest.mark.parametrize(
    "url",
    [
        "",
        "not-a-url",
        "ftp://example.com/file",
        "javascript:alert(1)",
        "https://",
        "https://exa mple.com",
    ],
)
def test_rejects_malformed_urls(url: str) -> None:
    assert not is_valid_url(url)


def test_rejects_overlong_url() -> None:
    url = "https://example.com/" + "a" * 2100
    assert not is_valid_url(url)
    assert is_valid_url(url, max_length=4096)


@pytest.mark.parametrize(
    "url",
    [
        "http://localhost:3000/admin",
        "http://127.0.0.1/",
        "http://10.0.0.5/internal",
        "http://192.168.1.1/",
        "http://169.254.169.254/latest/meta-data",
    ],
)
def test_private_targets(url: str) -> None:
    assert is_private_target(url)
    assert not is_valid_url(url)
    assert is_valid_url(url, block_private_targets=False)


def test_public_ip_is_not_private() -> None:
    assert not is_private_target("http://93.184.216.34/")


@pytest.mark.parametrize("code", ["abc", "my-link", "under_score", "A1b2C3", "x" * 20])
def test_valid_custom_codes(code: str) -> None:
    assert is_valid_custom_code(code)


@pytest.mark.parametrize("code", ["", "ab", "x" * 21, "has space", "dot.ted", "slash/es", "ünï"])
def test_invalid_custom_codes(code: str) -> None:
    assert not is_valid_custom_code(code)
