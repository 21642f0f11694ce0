import logging

import httpx

from app import config
from app.scrapers.base import ReelOwner, ReelPayload, ResolutionFailure, as_int, check_response, pick_user_agent

logger = logging.getLogger(__name__)

OEMBED_URL = "https://api.instagram.com/oembed/"
EMBED_WARNING = "Limited data available. Video playback may not work directly."


async def fetch_via_oembed(url: str, shortcode: str) -> ReelPayload:
    """
    Instagram public oEmbed API — thumbnail, caption, author and embed markup.
    Never carries a playable video URL, so the result is always an embed.
    """
    async with httpx.AsyncClient(follow_redirects=True, timeout=config.SCRAPER_TIMEOUT) as client:
        try:
            resp = await client.get(
                OEMBED_URL,
                params={"url": url, "omitscript": "true"},
                headers={"User-Agent": pick_user_agent(), "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise ResolutionFailure(f"oEmbed request failed: {e!r}") from e

    check_response(resp, "oEmbed")
    try:
        data = resp.json()
    except ValueError as e:
        raise ResolutionFailure("oEmbed returned a non-JSON body") from e

    if not isinstance(data, dict) or not data:
        raise ResolutionFailure("oEmbed returned no data")

    title = (data.get("title") or "").strip()
    logger.info(f"[INSTAGRAM] oEmbed metadata for {shortcode} (embed only)")
    return ReelPayload(
        type="embed",
        method="oembed",
        shortcode=shortcode,
        source_url=url,
        thumbnail=data.get("thumbnail_url"),
        caption=title,
        title=title,
        author=data.get("author_name") or "",
        author_url=data.get("author_url"),
        embed_html=data.get("html"),
        owner=ReelOwner(username=data.get("author_name")),
        width=as_int(data.get("thumbnail_width")) or None,
        height=as_int(data.get("thumbnail_height")) or None,
        warning=EMBED_WARNING,
    )
