import asyncio
import logging

import yt_dlp

from app import config
from app.scrapers.base import BLOCKED, UNAVAILABLE, ReelOwner, ReelPayload, ResolutionFailure, as_int

logger = logging.getLogger(__name__)

_BLOCKED_HINTS = ("login required", "rate-limit", "rate limit", "429", "403")


def _extract_info(url: str) -> dict | None:
    """Blocking yt-dlp metadata lookup; never downloads media."""
    ydl_opts = {
        "quiet": True,
        "no_warnings": True,
        "skip_download": True,
        "noplaylist": True,
        "socket_timeout": config.SCRAPER_TIMEOUT,
    }
    with yt_dlp.YoutubeDL(ydl_opts) as ydl:
        return ydl.extract_info(url, download=False)


def _has_video(entry: dict) -> bool:
    return entry.get("vcodec") not in (None, "none")


def _media_urls(info: dict) -> list[str]:
    """Direct media URLs, best first."""
    urls = []
    if info.get("url"):
        urls.append(info["url"])
    # formats are ordered worst → best by yt-dlp
    for fmt in reversed(info.get("formats") or []):
        if fmt.get("url") and fmt["url"] not in urls and fmt.get("vcodec") != "none":
            urls.append(fmt["url"])
    return urls


async def fetch_via_direct_url(url: str, shortcode: str) -> ReelPayload:
    """Resolve the reel with yt-dlp, which returns direct CDN media URLs."""
    try:
        info = await asyncio.to_thread(_extract_info, url)
    except yt_dlp.utils.DownloadError as e:
        message = str(e)
        category = BLOCKED if any(h in message.lower() for h in _BLOCKED_HINTS) else UNAVAILABLE
        raise ResolutionFailure(f"yt-dlp: {message}", category) from e

    if not info:
        raise ResolutionFailure("yt-dlp: no metadata returned")

    # Carousel posts come back as a playlist; the first item stands for the post
    entries = list(info.get("entries") or [])
    entry = entries[0] if entries else info

    urls = _media_urls(entry)
    if not urls:
        raise ResolutionFailure("yt-dlp: no direct media URL in response")

    is_video = _has_video(entry) or entry.get("ext") == "mp4"
    thumbnail = entry.get("thumbnail") or info.get("thumbnail")
    description = info.get("description") or ""
    uploader = info.get("uploader") or info.get("uploader_id") or info.get("channel") or ""

    logger.info(f"[INSTAGRAM] yt-dlp resolved {shortcode} ({len(urls)} media URL(s))")
    return ReelPayload(
        type="video" if is_video else "image",
        method="direct",
        shortcode=shortcode,
        source_url=url,
        video_url=urls[0] if is_video else None,
        image_url=None if is_video else urls[0],
        thumbnail=thumbnail,
        caption=description,
        title=(info.get("title") or "").strip(),
        author=uploader,
        likes=as_int(info.get("like_count")),
        comments=as_int(info.get("comment_count")),
        views=as_int(info.get("view_count")),
        owner=ReelOwner(username=info.get("uploader_id") or uploader or None),
        width=entry.get("width"),
        height=entry.get("height"),
    )
