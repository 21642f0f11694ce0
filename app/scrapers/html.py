"""
HTML heuristic strategy: fetch the public reel page like a browser would and dig
a media descriptor out of whatever Instagram embedded in it this week.

Matchers run in order and the first one that yields a media URL wins:
1. ``window._sharedData = {...}`` state blob
2. ``<script type="application/ld+json">`` structured data
3. ``window.__additionalDataLoaded('...', {...})`` state blob
4. Open Graph ``<meta>`` tags
"""
import json
import logging

import httpx
from bs4 import BeautifulSoup

from app import config
from app.scrapers.base import ReelOwner, ReelPayload, ResolutionFailure, as_int, browser_headers, check_response
from app.scrapers.json_api import payload_from_item

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()

HTML_WARNING = "This data may expire quickly. Media URLs are temporary and may require authentication."


def _json_after(text: str, marker: str):
    """Decode the first JSON object that follows `marker` in `text`, or None."""
    idx = text.find(marker)
    if idx == -1:
        return None
    start = text.find("{", idx + len(marker))
    if start == -1:
        return None
    try:
        obj, _ = _DECODER.raw_decode(text, start)
    except ValueError:
        return None
    return obj


def _scripts_containing(soup: BeautifulSoup, marker: str) -> list[str]:
    texts = []
    for script in soup.find_all("script"):
        content = script.string or script.get_text()
        if content and marker in content:
            texts.append(content)
    return texts


def payload_from_graphql(media: dict, shortcode: str, url: str) -> ReelPayload | None:
    """Map a GraphQL `shortcode_media` node. None if it has no media URL."""
    is_video = bool(media.get("is_video")) or media.get("__typename") in ("GraphVideo", "XDTGraphVideo")
    video_url = media.get("video_url") if is_video else None
    image_url = media.get("display_url")
    if not video_url and not image_url:
        return None

    edges = (media.get("edge_media_to_caption") or {}).get("edges") or []
    caption = edges[0].get("node", {}).get("text", "") if edges else ""
    comments = media.get("edge_media_to_comment") or media.get("edge_media_to_parent_comment") or {}
    owner = media.get("owner") or {}
    dimensions = media.get("dimensions") or {}

    return ReelPayload(
        type="video" if is_video else "image",
        method="html",
        shortcode=shortcode,
        source_url=url,
        video_url=video_url,
        image_url=image_url,
        thumbnail=media.get("thumbnail_src") or image_url,
        caption=caption,
        author=owner.get("username") or "",
        likes=as_int((media.get("edge_media_preview_like") or {}).get("count")),
        comments=as_int(comments.get("count")),
        views=as_int(media.get("video_view_count")),
        owner=ReelOwner(username=owner.get("username"), profile_pic=owner.get("profile_pic_url")),
        width=dimensions.get("width"),
        height=dimensions.get("height"),
        warning=HTML_WARNING,
    )


def _from_state_blob(data, shortcode: str, url: str) -> ReelPayload | None:
    if not isinstance(data, dict):
        return None
    post_page = (data.get("entry_data") or {}).get("PostPage") or []
    if post_page and isinstance(post_page[0], dict):
        media = (post_page[0].get("graphql") or {}).get("shortcode_media")
        if media:
            return payload_from_graphql(media, shortcode, url)
    media = (data.get("graphql") or {}).get("shortcode_media")
    if media:
        return payload_from_graphql(media, shortcode, url)
    items = data.get("items")
    if items and isinstance(items[0], dict):
        payload = payload_from_item(items[0], shortcode, url, "html")
        if payload:
            return payload.model_copy(update={"warning": HTML_WARNING})
    return None


def match_shared_data(soup: BeautifulSoup, shortcode: str, url: str) -> ReelPayload | None:
    for content in _scripts_containing(soup, "window._sharedData"):
        payload = _from_state_blob(_json_after(content, "window._sharedData"), shortcode, url)
        if payload:
            return payload
    return None


def _ld_nodes(data):
    """Flatten a JSON-LD document into its object nodes."""
    if isinstance(data, list):
        for entry in data:
            yield from _ld_nodes(entry)
    elif isinstance(data, dict):
        yield data
        for key in ("@graph", "video", "image", "associatedMedia"):
            if key in data:
                yield from _ld_nodes(data[key])


def _first_str(value) -> str | None:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get("url") or value.get("contentUrl")
    return value if isinstance(value, str) and value else None


def match_ld_json(soup: BeautifulSoup, shortcode: str, url: str) -> ReelPayload | None:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or script.get_text())
        except ValueError:
            continue

        nodes = list(_ld_nodes(data))
        video = next((n for n in nodes if n.get("@type") == "VideoObject" and _first_str(n.get("contentUrl"))), None)
        image = next((n for n in nodes if n.get("@type") == "ImageObject" and _first_str(n.get("contentUrl") or n.get("url"))), None)
        node = video or image
        if node is None:
            continue

        root = nodes[0]
        author = root.get("author") or node.get("author") or {}
        if isinstance(author, list):
            author = author[0] if author else {}
        username = None
        if isinstance(author, dict):
            username = (author.get("alternateName") or "").lstrip("@") or author.get("name")
        caption = node.get("caption") or root.get("articleBody") or node.get("description") or ""
        media_url = _first_str(node.get("contentUrl") or node.get("url"))

        return ReelPayload(
            type="video" if video else "image",
            method="html",
            shortcode=shortcode,
            source_url=url,
            video_url=media_url if video else None,
            image_url=None if video else media_url,
            thumbnail=_first_str(node.get("thumbnailUrl")) or _first_str(root.get("image")),
            caption=caption if isinstance(caption, str) else "",
            title=node.get("name") or "",
            author=username or "",
            owner=ReelOwner(username=username),
            width=as_int(node.get("width")) or None,
            height=as_int(node.get("height")) or None,
            warning=HTML_WARNING,
        )
    return None


def match_additional_data(soup: BeautifulSoup, shortcode: str, url: str) -> ReelPayload | None:
    for content in _scripts_containing(soup, "additionalDataLoaded"):
        payload = _from_state_blob(_json_after(content, "additionalDataLoaded("), shortcode, url)
        if payload:
            return payload
    return None


def _meta(soup: BeautifulSoup, prop: str) -> str | None:
    tag = soup.find("meta", property=prop) or soup.find("meta", attrs={"name": prop})
    return tag.get("content") if tag and tag.get("content") else None


def match_meta_tags(soup: BeautifulSoup, shortcode: str, url: str) -> ReelPayload | None:
    video_url = _meta(soup, "og:video:secure_url") or _meta(soup, "og:video")
    image_url = _meta(soup, "og:image")
    if not video_url and not image_url:
        return None
    title = _meta(soup, "og:title") or ""
    return ReelPayload(
        type="video" if video_url else "image",
        method="html",
        shortcode=shortcode,
        source_url=url,
        video_url=video_url,
        image_url=image_url,
        thumbnail=image_url,
        caption=_meta(soup, "og:description") or "",
        title=title,
        warning=HTML_WARNING,
    )


MATCHERS = (
    ("shared_data", match_shared_data),
    ("ld_json", match_ld_json),
    ("additional_data", match_additional_data),
    ("meta_tags", match_meta_tags),
)


def parse_reel_page(html: str, shortcode: str, url: str) -> ReelPayload | None:
    """Run every matcher against the page; first media descriptor found wins."""
    soup = BeautifulSoup(html, "html.parser")
    for name, matcher in MATCHERS:
        payload = matcher(soup, shortcode, url)
        if payload:
            logger.info(f"[INSTAGRAM] HTML matcher '{name}' found {payload.type} for {shortcode}")
            return payload
    return None


async def fetch_via_html(url: str, shortcode: str) -> ReelPayload:
    async with httpx.AsyncClient(follow_redirects=True, timeout=config.SCRAPER_TIMEOUT) as client:
        try:
            resp = await client.get(url, headers=browser_headers())
        except httpx.HTTPError as e:
            raise ResolutionFailure(f"HTML page request failed: {e!r}") from e

    check_response(resp, "HTML page")
    logger.info(f"[INSTAGRAM] HTML page status={resp.status_code}, length={len(resp.text)}")

    payload = parse_reel_page(resp.text, shortcode, url)
    if payload is None:
        logger.debug(f"[INSTAGRAM] Unparsed page preview: {resp.text[:500]!r}")
        raise ResolutionFailure("Could not parse embedded media data from the Instagram page")
    return payload
