import logging

from app.scrapers.base import BLOCKED, INVALID_URL, UNAVAILABLE, ReelPayload, ResolutionFailure
from app.scrapers.direct import fetch_via_direct_url
from app.scrapers.html import fetch_via_html
from app.scrapers.json_api import fetch_via_json_endpoint
from app.scrapers.oembed import fetch_via_oembed
from app.scrapers.shortcode import extract_shortcode, reel_url

logger = logging.getLogger(__name__)

# Highest priority first. Each entry: (name, async (url, shortcode) -> ReelPayload)
STRATEGIES = (
    ("direct", fetch_via_direct_url),
    ("json", fetch_via_json_endpoint),
    ("oembed", fetch_via_oembed),
    ("html", fetch_via_html),
)


async def resolve_reel(source_url: str, strategies=None) -> ReelPayload:
    """
    Strategy (in order — one at a time, never in parallel):
    1. yt-dlp direct resolution  — direct CDN video URL when it works.
    2. `?__a=1` JSON endpoint    — full item JSON, often disabled.
    3. Public oEmbed API         — thumbnail + caption + embed markup, no video.
    4. HTML page heuristics      — embedded state blobs, JSON-LD, OG tags.

    The first payload with a playable video URL is returned as-is. Otherwise the
    highest-fidelity payload seen wins (image beats embed-only metadata). Raises
    ResolutionFailure: `invalid_url` before any network call when no shortcode can
    be extracted, `unavailable` (or `blocked`) when every strategy failed.
    """
    shortcode = extract_shortcode(source_url or "")
    if not shortcode:
        raise ResolutionFailure("Invalid Instagram URL: could not extract shortcode", INVALID_URL)

    url = source_url.strip()
    if url == shortcode:
        url = reel_url(shortcode)

    best: ReelPayload | None = None
    failures: list[ResolutionFailure] = []

    for name, strategy in strategies or STRATEGIES:
        logger.info(f"[RESOLVER] {shortcode}: trying {name}")
        try:
            payload = await strategy(url, shortcode)
        except ResolutionFailure as e:
            logger.info(f"[RESOLVER] {shortcode}: {name} failed ({e.category}): {e.message}")
            failures.append(e)
            continue
        except Exception as e:
            logger.warning(f"[RESOLVER] {shortcode}: {name} raised {e!r}")
            failures.append(ResolutionFailure(f"{name}: {e}"))
            continue

        if payload.is_playable:
            logger.info(f"[RESOLVER] {shortcode}: resolved via {name}")
            return payload
        if best is None or payload.fidelity > best.fidelity:
            best = payload

    if best is not None:
        logger.warning(f"[RESOLVER] {shortcode}: no playable video, keeping {best.method} ({best.type})")
        return best

    last = failures[-1].message if failures else "No strategies configured"
    category = BLOCKED if failures and all(f.is_blocked for f in failures) else UNAVAILABLE
    logger.warning(f"[RESOLVER] {shortcode}: all strategies failed ({category})")
    raise ResolutionFailure(last, category)
