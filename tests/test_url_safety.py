import pytest

from relay.url_safety import is_safe_url


@pytest.mark.parametrize("url", [
    "http://example.com",
    "https://example.com/path?q=1#frag",
    "HTTPS://EXAMPLE.COM",
    "http://localhost:8080/api",
    "https://user:pw@example.com/",
    "http://[::1]:5000/",
    "  https://example.com  ",
])
def test_http_and_https_urls_are_safe(url):
    assert is_safe_url(url) is True


@pytest.mark.parametrize("url", [
    "file:///etc/passwd",
    "ftp://example.com/file",
    "data:text/plain,hello",
    "javascript:alert(1)",
    "gopher://example.com",
    "//example.com/path",
    "example.com",
    "/relative/path",
    "",
    "   ",
    "http://",
    "https:///nohost",
    "http://exa mple.com",
    "http://example.com:99999/",
    "http://[::1/",
    "http://example.com/\x00",
])
def test_other_schemes_and_malformed_urls_are_rejected(url):
    assert is_safe_url(url) is False


@pytest.mark.parametrize("value", [None, 123, b"http://example.com", ["http://example.com"]])
def test_non_string_input_is_rejected(value):
    assert is_safe_url(value) is False


def test_allowed_schemes_can_be_narrowed():
    assert is_safe_url("http://example.com", allowed_schemes=("https",)) is False
    assert is_safe_url("https://example.com", allowed_schemes=("https",)) is True
