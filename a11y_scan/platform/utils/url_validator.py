from typing import Optional, Tuple
from urllib.parse import urlparse

ALLOWED_SCHEMES = ("http", "https")


def validate_url(url: Optional[str]) -> Tuple[bool, str, str]:
    """
    Check that `url` is an absolute http(s) URL with a host.

    No scheme is guessed; a scan target must be given in full.

    Returns:
        (is_valid, cleaned_url, error_message)
    """
    if url is None or not str(url).strip():
        return False, "", "URL is required"

    cleaned = str(url).strip()

    try:
        parsed = urlparse(cleaned)
        # accessing .port validates the netloc (raises on junk like host:abc)
        parsed.port
    except ValueError as e:
        return False, cleaned, f"Invalid URL format: {str(e)}"

    if not parsed.scheme or not parsed.netloc:
        return False, cleaned, "Invalid URL format: expected an absolute URL such as https://example.com"

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        return False, cleaned, f"Invalid URL format: unsupported scheme {parsed.scheme} (must be http or https)"

    if not parsed.hostname:
        return False, cleaned, "Invalid URL format: missing domain"

    if any(ch.isspace() for ch in cleaned):
        return False, cleaned, "Invalid URL format: URL must not contain whitespace"

    return True, cleaned, ""
