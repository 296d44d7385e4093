"""
Network filtering for scan sessions.

The decision is a plain predicate over DevTools resource types. The session
manager evaluates it once per session and turns the denied types into Chrome
settings, so no request callback ever has to be registered on the page.
"""
from typing import Callable, Dict, FrozenSet, List

# Network.ResourceType values from the Chrome DevTools protocol
RESOURCE_TYPES = (
    "Document",
    "Stylesheet",
    "Image",
    "Media",
    "Font",
    "Script",
    "TextTrack",
    "XHR",
    "Fetch",
    "EventSource",
    "WebSocket",
    "Manifest",
    "Other",
)

BLOCKED_RESOURCE_TYPES: FrozenSet[str] = frozenset({"Image"})

# Chrome can only block by URL, so each blockable type maps to the extensions it is served as.
_TYPE_EXTENSIONS: Dict[str, List[str]] = {
    "Image": ["png", "jpg", "jpeg", "gif", "webp", "svg", "ico", "bmp", "avif", "tif", "tiff"],
    "Media": ["mp4", "webm", "ogg", "mp3", "wav", "m4a", "mov"],
    "Font": ["woff", "woff2", "ttf", "otf", "eot"],
}

RequestFilter = Callable[[str], bool]


def should_allow(resource_type: str) -> bool:
    """Images are dropped to save bandwidth and time, everything else loads."""
    return resource_type not in BLOCKED_RESOURCE_TYPES


def denied_resource_types(predicate: RequestFilter = should_allow) -> List[str]:
    return [rtype for rtype in RESOURCE_TYPES if not predicate(rtype)]


def blocked_url_patterns(predicate: RequestFilter = should_allow) -> List[str]:
    """URL patterns for Network.setBlockedURLs, with and without a query string."""
    patterns = []
    for rtype in denied_resource_types(predicate):
        for ext in _TYPE_EXTENSIONS.get(rtype, []):
            patterns.append(f"*.{ext}")
            patterns.append(f"*.{ext}?*")
    return patterns


def blocks_images(predicate: RequestFilter = should_allow) -> bool:
    return not predicate("Image")
