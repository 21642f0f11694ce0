import re
from urllib.parse import urlparse

SHORTCODE_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# /reel/, /reels/ and /p/ all address the same media item; /tv/ is the old IGTV path
_PATH_RE = re.compile(r"/(?:reel|reels|p|tv)/([A-Za-z0-9_-]+)")
_INSTAGRAM_HOSTS = ("instagram.com", "instagr.am")


def _is_instagram_host(host: str) -> bool:
    host = host.lower()
    return any(host == h or host.endswith("." + h) for h in _INSTAGRAM_HOSTS)


def extract_shortcode(value: str) -> str | None:
    """Return the reel shortcode for a URL or bare shortcode, or None if there isn't one.

    Pure and deterministic: no network access, and feeding the result back in
    returns the same shortcode.
    """
    if not value:
        return None
    candidate = value.strip()
    if SHORTCODE_RE.match(candidate):
        return candidate

    if "://" not in candidate:
        candidate = "https://" + candidate
    try:
        parsed = urlparse(candidate)
        host = parsed.hostname or ""
    except ValueError:
        return None
    if not _is_instagram_host(host):
        return None

    match = _PATH_RE.search(parsed.path)
    return match.group(1) if match else None


def reel_url(shortcode: str) -> str:
    """Canonical public URL for a shortcode."""
    return f"https://www.instagram.com/reel/{shortcode}/"
