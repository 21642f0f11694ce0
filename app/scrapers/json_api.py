import logging

import httpx

from app import config
from app.scrapers.base import (
    ReelOwner,
    ReelPayload,
    ResolutionFailure,
    as_int,
    check_response,
    pick_user_agent,
)

logger = logging.getLogger(__name__)

JSON_ENDPOINT = "https://www.instagram.com/p/{shortcode}/"


def _first_url(versions) -> str | None:
    if isinstance(versions, list) and versions and isinstance(versions[0], dict):
        return versions[0].get("url") or None
    return None


def payload_from_item(item: dict, shortcode: str, url: str, method: str) -> ReelPayload | None:
    """Map one entry of Instagram's private-API `items` array. None if it has no media URL."""
    is_video = item.get("media_type") == 2 or item.get("product_type") == "clips"
    video_url = _first_url(item.get("video_versions")) if is_video else None
    image_url = _first_url((item.get("image_versions2") or {}).get("candidates"))
    if not video_url and not image_url:
        return None

    user = item.get("user") or {}
    caption = item.get("caption") or {}
    return ReelPayload(
        type="video" if is_video else "image",
        method=method,
        shortcode=shortcode,
        source_url=url,
        video_url=video_url,
        image_url=image_url,
        thumbnail=image_url,
        caption=caption.get("text") or "",
        author=user.get("username") or "",
        likes=as_int(item.get("like_count")),
        comments=as_int(item.get("comment_count")),
        views=as_int(item.get("play_count") or item.get("view_count")),
        owner=ReelOwner(username=user.get("username"), profile_pic=user.get("profile_pic_url")),
        width=item.get("original_width"),
        height=item.get("original_height"),
    )


async def fetch_via_json_endpoint(url: str, shortcode: str) -> ReelPayload:
    """Instagram's `?__a=1` JSON view of a post. Frequently disabled for anonymous clients."""
    headers = {
        "User-Agent": pick_user_agent(),
        "Accept": "application/json",
        "X-Requested-With": "XMLHttpRequest",
    }
    async with httpx.AsyncClient(follow_redirects=True, timeout=config.SCRAPER_TIMEOUT) as client:
        try:
            resp = await client.get(
                JSON_ENDPOINT.format(shortcode=shortcode),
                params={"__a": "1", "__d": "dis"},
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise ResolutionFailure(f"JSON endpoint request failed: {e!r}") from e

    check_response(resp, "JSON endpoint")
    try:
        data = resp.json()
    except ValueError as e:
        # A login wall comes back as a 200 HTML page
        raise ResolutionFailure("JSON endpoint returned a non-JSON body") from e

    items = data.get("items") if isinstance(data, dict) else None
    if not items or not isinstance(items[0], dict):
        raise ResolutionFailure("JSON endpoint response has no items")

    payload = payload_from_item(items[0], shortcode, url, "json")
    if payload is None:
        raise ResolutionFailure("JSON endpoint item has no media URL")

    logger.info(f"[INSTAGRAM] JSON endpoint resolved {shortcode} ({payload.type})")
    return payload
