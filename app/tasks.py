import logging

from app import notifications, reels
from app.scrapers import UNAVAILABLE, ResolutionFailure, resolve_reel

logger = logging.getLogger(__name__)


async def process_reel(reel_id: int, notify: bool = True) -> str | None:
    """
    Resolve one pending record and write its terminal state.

    Runs detached from the request that created the record, so nothing raised
    here may escape: every failure ends up in the record's failure reason.
    Returns the final status, or None if the record was not pending.
    """
    reel = reels.get_reel(reel_id)
    if not reel or reel["status"] != "pending":
        logger.info(f"[TASKS] Reel {reel_id} is not pending, skipping")
        return None

    shortcode = reel["shortcode"]
    try:
        payload = await resolve_reel(reel["source_url"])
    except ResolutionFailure as e:
        reels.mark_failed(reel_id, e.message, e.category)
        logger.warning(f"[TASKS] Failed to scrape reel {shortcode}: {e.message}")
        return "failed"
    except Exception as e:
        logger.exception(f"[TASKS] Unexpected error while scraping reel {shortcode}")
        reels.mark_failed(reel_id, str(e) or e.__class__.__name__, UNAVAILABLE)
        return "failed"

    if not reels.mark_success(reel_id, payload):
        logger.warning(f"[TASKS] Reel {shortcode} left pending state during resolution")
        return None
    logger.info(f"[TASKS] Scraped reel {shortcode} via {payload.method} ({payload.type})")

    if notify:
        try:
            await notifications.notify_new_reel(reel, payload)
        except Exception:
            logger.exception(f"[TASKS] Push notification for {shortcode} failed")
    return "success"
