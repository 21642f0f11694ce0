from app.scrapers.base import (
    BLOCKED,
    DUPLICATE,
    INVALID_URL,
    UNAVAILABLE,
    ReelOwner,
    ReelPayload,
    ResolutionFailure,
)
from app.scrapers.instagram import STRATEGIES, resolve_reel
from app.scrapers.shortcode import SHORTCODE_RE, extract_shortcode, reel_url

__all__ = [
    "BLOCKED",
    "DUPLICATE",
    "INVALID_URL",
    "UNAVAILABLE",
    "ReelOwner",
    "ReelPayload",
    "ResolutionFailure",
    "STRATEGIES",
    "SHORTCODE_RE",
    "extract_shortcode",
    "reel_url",
    "resolve_reel",
]
