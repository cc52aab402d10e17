"""Map a page URL or hostname onto a dating-app identifier."""

from urllib.parse import urlparse

UNKNOWN_PLATFORM = "unknown"

# Checked in order; first substring match wins
PLATFORM_HOST_MARKERS: tuple[tuple[str, str], ...] = (
    ("tinder.com", "tinder"),
    ("bumble.com", "bumble"),
    ("hinge.co", "hinge"),
    ("match.com", "match"),
    ("okcupid.com", "okcupid"),
    ("pof.com", "pof"),
    ("eharmony.com", "eharmony"),
    ("zoosk.com", "zoosk"),
    ("badoo.com", "badoo"),
    ("coffee", "coffee_meets_bagel"),
)


def _hostname(url_or_host: str) -> str:
    value = url_or_host.strip().lower()
    if "://" not in value:
        value = f"//{value}"
    try:
        return urlparse(value).hostname or ""
    except ValueError:
        return ""


def detect_platform(url_or_host: str | None) -> str:
    """Return the platform id for a URL/hostname, or ``unknown``. Never raises."""
    if not url_or_host or not isinstance(url_or_host, str):
        return UNKNOWN_PLATFORM

    hostname = _hostname(url_or_host)
    for marker, platform in PLATFORM_HOST_MARKERS:
        if marker in hostname:
            return platform
    return UNKNOWN_PLATFORM
