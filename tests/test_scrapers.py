"""Tests for the individual scraping strategies, with outbound HTTP mocked."""

import json

import httpx
import pytest
import yt_dlp

from app.scrapers import BLOCKED, UNAVAILABLE, ResolutionFailure, direct
from app.scrapers.base import USER_AGENTS
from app.scrapers.html import fetch_via_html, parse_reel_page
from app.scrapers.json_api import fetch_via_json_endpoint
from app.scrapers.oembed import fetch_via_oembed

URL = "https://www.instagram.com/reel/ABC123/"

CLIP_ITEM = {
    "media_type": 2,
    "product_type": "clips",
    "video_versions": [{"url": "https://cdn.example.com/clip.mp4", "width": 720}],
    "image_versions2": {"candidates": [{"url": "https://cdn.example.com/clip.jpg"}]},
    "caption": {"text": "Sunset run"},
    "like_count": 12,
    "comment_count": 3,
    "play_count": 450,
    "user": {"username": "runner", "profile_pic_url": "https://cdn.example.com/runner.jpg"},
}


# ── JSON endpoint ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_json_endpoint_maps_clip_item(mock_http):
    requests = mock_http(lambda request: httpx.Response(200, json={"items": [CLIP_ITEM]}))

    payload = await fetch_via_json_endpoint(URL, "ABC123")

    assert payload.type == "video"
    assert payload.method == "json"
    assert payload.video_url == "https://cdn.example.com/clip.mp4"
    assert payload.thumbnail == "https://cdn.example.com/clip.jpg"
    assert payload.caption == "Sunset run"
    assert (payload.likes, payload.comments, payload.views) == (12, 3, 450)
    assert payload.owner.username == "runner"
    assert requests[0].url.path == "/p/ABC123/"
    assert requests[0].url.params["__a"] == "1"
    assert requests[0].headers["User-Agent"] in USER_AGENTS


@pytest.mark.asyncio
async def test_json_endpoint_login_wall_is_a_failure(mock_http):
    mock_http(lambda request: httpx.Response(200, text="<html><body>Log in</body></html>"))

    with pytest.raises(ResolutionFailure, match="non-JSON"):
        await fetch_via_json_endpoint(URL, "ABC123")


@pytest.mark.asyncio
async def test_json_endpoint_item_without_media_is_a_failure(mock_http):
    mock_http(lambda request: httpx.Response(200, json={"items": [{"media_type": 1}]}))

    with pytest.raises(ResolutionFailure, match="no media URL"):
        await fetch_via_json_endpoint(URL, "ABC123")


@pytest.mark.asyncio
async def test_json_endpoint_forbidden_is_blocked(mock_http):
    mock_http(lambda request: httpx.Response(403))

    with pytest.raises(ResolutionFailure) as exc:
        await fetch_via_json_endpoint(URL, "ABC123")

    assert exc.value.category == BLOCKED


@pytest.mark.asyncio
async def test_json_endpoint_timeout_is_a_failure(mock_http):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    mock_http(handler)

    with pytest.raises(ResolutionFailure) as exc:
        await fetch_via_json_endpoint(URL, "ABC123")

    assert exc.value.category == UNAVAILABLE


# ── oEmbed ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_oembed_returns_embed_with_warning(mock_http):
    requests = mock_http(lambda request: httpx.Response(200, json={
        "title": "Sunset run",
        "author_name": "runner",
        "author_url": "https://www.instagram.com/runner",
        "thumbnail_url": "https://cdn.example.com/thumb.jpg",
        "thumbnail_width": 640,
        "thumbnail_height": 1136,
        "html": "<blockquote class=\"instagram-media\"></blockquote>",
    }))

    payload = await fetch_via_oembed(URL, "ABC123")

    assert payload.type == "embed"
    assert payload.video_url is None
    assert not payload.is_playable
    assert payload.warning
    assert payload.thumbnail == "https://cdn.example.com/thumb.jpg"
    assert payload.author == "runner"
    assert payload.embed_html.startswith("<blockquote")
    assert requests[0].url.params["url"] == URL


@pytest.mark.asyncio
async def test_oembed_empty_body_is_a_failure(mock_http):
    mock_http(lambda request: httpx.Response(200, json={}))

    with pytest.raises(ResolutionFailure):
        await fetch_via_oembed(URL, "ABC123")


@pytest.mark.asyncio
async def test_oembed_rate_limit_is_blocked(mock_http):
    mock_http(lambda request: httpx.Response(429))

    with pytest.raises(ResolutionFailure) as exc:
        await fetch_via_oembed(URL, "ABC123")

    assert exc.value.category == BLOCKED


# ── HTML heuristics ─────────────────────────────────────────────────────────

SHARED_DATA_PAGE = """
<html><head>
<script type="text/javascript">window._sharedData = %s;</script>
</head><body></body></html>
""" % json.dumps({
    "entry_data": {"PostPage": [{"graphql": {"shortcode_media": {
        "__typename": "GraphVideo",
        "is_video": True,
        "video_url": "https://cdn.example.com/shared.mp4",
        "display_url": "https://cdn.example.com/shared.jpg",
        "edge_media_to_caption": {"edges": [{"node": {"text": "from shared data"}}]},
        "edge_media_preview_like": {"count": 7},
        "edge_media_to_comment": {"count": 2},
        "video_view_count": 99,
        "owner": {"username": "runner"},
        "dimensions": {"width": 720, "height": 1280},
    }}}]},
})

LD_JSON_PAGE = """
<html><head>
<script type="application/ld+json">%s</script>
</head></html>
""" % json.dumps({
    "@context": "https://schema.org",
    "@type": "SocialMediaPosting",
    "articleBody": "from ld json",
    "author": {"@type": "Person", "alternateName": "@runner", "name": "Runner"},
    "video": [{
        "@type": "VideoObject",
        "contentUrl": "https://cdn.example.com/ld.mp4",
        "thumbnailUrl": "https://cdn.example.com/ld.jpg",
        "width": "720",
        "height": "1280",
    }],
})

ADDITIONAL_DATA_PAGE = """
<html><body>
<script>window.__additionalDataLoaded('/reel/ABC123/',%s);</script>
</body></html>
""" % json.dumps({"items": [CLIP_ITEM]})

META_PAGE = """
<html><head>
<meta property="og:title" content="Runner on Instagram" />
<meta property="og:description" content="12 likes - Sunset run" />
<meta property="og:image" content="https://cdn.example.com/og.jpg" />
<meta property="og:video" content="https://cdn.example.com/og.mp4" />
</head></html>
"""


def test_shared_data_blob():
    payload = parse_reel_page(SHARED_DATA_PAGE, "ABC123", URL)

    assert payload.method == "html"
    assert payload.video_url == "https://cdn.example.com/shared.mp4"
    assert payload.caption == "from shared data"
    assert (payload.likes, payload.comments, payload.views) == (7, 2, 99)
    assert (payload.width, payload.height) == (720, 1280)


def test_ld_json_block():
    payload = parse_reel_page(LD_JSON_PAGE, "ABC123", URL)

    assert payload.type == "video"
    assert payload.video_url == "https://cdn.example.com/ld.mp4"
    assert payload.thumbnail == "https://cdn.example.com/ld.jpg"
    assert payload.caption == "from ld json"
    assert payload.author == "runner"
    assert payload.width == 720


def test_additional_data_blob():
    payload = parse_reel_page(ADDITIONAL_DATA_PAGE, "ABC123", URL)

    assert payload.method == "html"
    assert payload.video_url == "https://cdn.example.com/clip.mp4"
    assert payload.warning


def test_meta_tag_fallback():
    payload = parse_reel_page(META_PAGE, "ABC123", URL)

    assert payload.video_url == "https://cdn.example.com/og.mp4"
    assert payload.image_url == "https://cdn.example.com/og.jpg"
    assert payload.caption == "12 likes - Sunset run"


def test_broken_state_blob_falls_through_to_meta_tags():
    page = META_PAGE.replace("</head>", "<script>window._sharedData = {not json;</script></head>")

    payload = parse_reel_page(page, "ABC123", URL)

    assert payload.video_url == "https://cdn.example.com/og.mp4"


def test_page_without_media_gives_nothing():
    assert parse_reel_page("<html><head><title>Instagram</title></head></html>", "ABC123", URL) is None


@pytest.mark.asyncio
async def test_fetch_via_html_sends_browser_headers(mock_http):
    requests = mock_http(lambda request: httpx.Response(200, text=META_PAGE))

    payload = await fetch_via_html(URL, "ABC123")

    assert payload.is_playable
    assert requests[0].headers["User-Agent"] in USER_AGENTS
    assert "text/html" in requests[0].headers["Accept"]


@pytest.mark.asyncio
async def test_fetch_via_html_unparsable_page_is_a_failure(mock_http):
    mock_http(lambda request: httpx.Response(200, text="<html></html>"))

    with pytest.raises(ResolutionFailure, match="Could not parse"):
        await fetch_via_html(URL, "ABC123")


@pytest.mark.asyncio
async def test_fetch_via_html_not_found(mock_http):
    mock_http(lambda request: httpx.Response(404))

    with pytest.raises(ResolutionFailure, match="not found"):
        await fetch_via_html(URL, "ABC123")


# ── yt-dlp direct resolution ────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_direct_resolution_returns_video(monkeypatch):
    monkeypatch.setattr(direct, "_extract_info", lambda url: {
        "url": "https://cdn.example.com/direct.mp4",
        "vcodec": "avc1",
        "ext": "mp4",
        "title": "Video by runner",
        "description": "Sunset run",
        "uploader": "Runner",
        "uploader_id": "runner",
        "thumbnail": "https://cdn.example.com/direct.jpg",
        "like_count": 5,
        "view_count": 40,
    })

    payload = await direct.fetch_via_direct_url(URL, "ABC123")

    assert payload.method == "direct"
    assert payload.video_url == "https://cdn.example.com/direct.mp4"
    assert payload.caption == "Sunset run"
    assert payload.owner.username == "runner"


@pytest.mark.asyncio
async def test_direct_resolution_uses_first_carousel_entry(monkeypatch):
    monkeypatch.setattr(direct, "_extract_info", lambda url: {
        "title": "Post",
        "entries": [
            {"url": "https://cdn.example.com/1.mp4", "vcodec": "avc1"},
            {"url": "https://cdn.example.com/2.mp4", "vcodec": "avc1"},
        ],
    })

    payload = await direct.fetch_via_direct_url(URL, "ABC123")

    assert payload.video_url == "https://cdn.example.com/1.mp4"


@pytest.mark.asyncio
async def test_direct_resolution_without_media_url_fails(monkeypatch):
    monkeypatch.setattr(direct, "_extract_info", lambda url: {"title": "Post", "formats": []})

    with pytest.raises(ResolutionFailure, match="no direct media URL"):
        await direct.fetch_via_direct_url(URL, "ABC123")


@pytest.mark.asyncio
async def test_direct_resolution_login_required_is_blocked(monkeypatch):
    def raise_download_error(url):
        raise yt_dlp.utils.DownloadError("ERROR: [Instagram] ABC123: login required")

    monkeypatch.setattr(direct, "_extract_info", raise_download_error)

    with pytest.raises(ResolutionFailure) as exc:
        await direct.fetch_via_direct_url(URL, "ABC123")

    assert exc.value.category == BLOCKED
