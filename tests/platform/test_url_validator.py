import pytest

from a11y_scan.platform.utils.url_validator import validate_url


class TestValidateUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com",
            "http://example.com/path?q=1",
            "https://sub.example.co.uk:8443/a/b",
            "  https://example.com  ",
        ],
    )
    def test_accepts_absolute_http_urls(self, url):
        is_valid, cleaned, error = validate_url(url)
        assert is_valid is True
        assert cleaned == url.strip()
        assert error == ""

    @pytest.mark.parametrize("url", [None, "", "   "])
    def test_missing_url(self, url):
        is_valid, _, error = validate_url(url)
        assert is_valid is False
        assert error == "URL is required"

    @pytest.mark.parametrize(
        "url",
        [
            "not-a-url",
            "example.com",
            "//example.com/page",
            "ftp://example.com",
            "javascript:alert(1)",
            "file:///etc/passwd",
            "https://",
            "https://exa mple.com",
            "http://example.com:abc",
        ],
    )
    def test_rejects_malformed_urls(self, url):
        is_valid, _, error = validate_url(url)
        assert is_valid is False
        assert "Invalid URL format" in error

    def test_no_scheme_is_not_guessed(self):
        is_valid, cleaned, _ = validate_url("not-a-url")
        assert is_valid is False
        assert cleaned == "not-a-url"
