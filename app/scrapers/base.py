"""
Shared pieces of the Instagram scrapers: the failure type every strategy raises,
the one payload shape every strategy returns, and the browser-like request headers.
"""
import random
from datetime import datetime, timezone
from typing import Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Failure categories
INVALID_URL = "invalid_url"
DUPLICATE = "duplicate"
UNAVAILABLE = "unavailable"
BLOCKED = "blocked"  # access denied upstream; a kind of UNAVAILABLE where retrying later may help

# Instagram answers these when it refuses to serve anonymous clients
_BLOCKED_STATUSES = {401, 403, 429}

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
)


class ResolutionFailure(Exception):
    """A reel could not be resolved. `category` is one of the module-level categories."""

    def __init__(self, message: str, category: str = UNAVAILABLE):
        super().__init__(message)
        self.message = message
        self.category = category

    @property
    def is_blocked(self) -> bool:
        return self.category == BLOCKED


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReelOwner(_CamelModel):
    username: Optional[str] = None
    profile_pic: Optional[str] = None


class ReelPayload(_CamelModel):
    """Normalized media descriptor, whichever strategy produced it."""

    type: Literal["video", "image", "embed"]
    method: Literal["direct", "json", "oembed", "html"]
    shortcode: str
    source_url: str
    video_url: Optional[str] = None
    image_url: Optional[str] = None
    thumbnail: Optional[str] = None
    caption: str = ""
    title: str = ""
    author: str = ""
    author_url: Optional[str] = None
    embed_html: Optional[str] = None
    likes: int = 0
    comments: int = 0
    views: int = 0
    owner: Optional[ReelOwner] = None
    width: Optional[int] = None
    height: Optional[int] = None
    warning: Optional[str] = None
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_playable(self) -> bool:
        return bool(self.video_url)

    @property
    def fidelity(self) -> int:
        """3 = playable video, 2 = direct image, 1 = embed metadata only."""
        if self.video_url:
            return 3
        if self.image_url:
            return 2
        return 1


def pick_user_agent() -> str:
    return random.choice(USER_AGENTS)


def browser_headers(accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8") -> dict:
    """Headers that look like a desktop browser navigating to the page."""
    return {
        "User-Agent": pick_user_agent(),
        "Accept": accept,
        "Accept-Language": "en-US,en;q=0.9",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Upgrade-Insecure-Requests": "1",
        "Cache-Control": "max-age=0",
    }


def check_response(resp: httpx.Response, source: str) -> None:
    """Raise ResolutionFailure for any non-2xx answer."""
    if resp.is_success:
        return
    status = resp.status_code
    if status in _BLOCKED_STATUSES:
        if status == 429:
            raise ResolutionFailure(f"{source}: rate limited by Instagram (429)", BLOCKED)
        raise ResolutionFailure(
            f"{source}: access forbidden ({status}); Instagram may have blocked this IP or requires login",
            BLOCKED,
        )
    if status == 404:
        raise ResolutionFailure(f"{source}: reel not found or is private (404)")
    raise ResolutionFailure(f"{source}: Instagram returned status {status}")


def as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0
