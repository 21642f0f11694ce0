"""
Web Push notifications: subscription bookkeeping and fan-out delivery.

Delivery goes through pywebpush with VAPID credentials from the environment.
Without credentials every send is a logged no-op. Subscriptions the push
service reports as gone (404/410) are deleted.
"""
import asyncio
import json
import logging
import time

from app import config
from app.database import get_db

logger = logging.getLogger(__name__)

# Push services answer these for endpoints that will never work again
_GONE_STATUSES = {404, 410}


class DeliveryError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


# ── Subscriptions ──────────────────────────────────────────────────────────

def save_subscription(user_id: int, endpoint: str, p256dh: str, auth: str, user_agent: str = "") -> None:
    """Insert or re-own a subscription; endpoints are unique."""
    conn = get_db()
    try:
        conn.execute(
            """INSERT INTO push_subscriptions (user_id, endpoint, p256dh, auth, user_agent)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT (endpoint) DO UPDATE SET
                   user_id = excluded.user_id,
                   p256dh = excluded.p256dh,
                   auth = excluded.auth,
                   user_agent = excluded.user_agent""",
            (user_id, endpoint, p256dh, auth, user_agent or ""),
        )
        conn.commit()
    finally:
        conn.close()


def delete_subscription(endpoint: str, user_id: int | None = None) -> bool:
    conn = get_db()
    try:
        if user_id is None:
            cur = conn.execute("DELETE FROM push_subscriptions WHERE endpoint = ?", (endpoint,))
        else:
            cur = conn.execute(
                "DELETE FROM push_subscriptions WHERE endpoint = ? AND user_id = ?",
                (endpoint, user_id),
            )
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()


def subscriptions_for(user_id: int | None = None) -> list[dict]:
    """Subscriptions of one account, or of every viewer when user_id is None."""
    conn = get_db()
    try:
        if user_id is not None:
            rows = conn.execute("SELECT * FROM push_subscriptions WHERE user_id = ?", (user_id,)).fetchall()
        else:
            rows = conn.execute(
                "SELECT push_subscriptions.* FROM push_subscriptions "
                "JOIN users ON users.id = push_subscriptions.user_id WHERE users.role = 'viewer'"
            ).fetchall()
    finally:
        conn.close()
    return [dict(r) for r in rows]


# ── Delivery ───────────────────────────────────────────────────────────────

def is_configured() -> bool:
    return bool(config.VAPID_PUBLIC_KEY and config.VAPID_PRIVATE_KEY)


def _deliver(subscription: dict, data: str) -> None:
    """Blocking send of one push message."""
    from pywebpush import WebPushException, webpush

    try:
        webpush(
            subscription_info={
                "endpoint": subscription["endpoint"],
                "keys": {"p256dh": subscription["p256dh"], "auth": subscription["auth"]},
            },
            data=data,
            vapid_private_key=config.VAPID_PRIVATE_KEY,
            vapid_claims={"sub": config.VAPID_SUBJECT},
            timeout=config.SCRAPER_TIMEOUT,
        )
    except WebPushException as e:
        status = e.response.status_code if e.response is not None else None
        raise DeliveryError(str(e), status) from e


async def _send_one(subscription: dict, data: str) -> bool:
    try:
        await asyncio.to_thread(_deliver, subscription, data)
        return True
    except DeliveryError as e:
        logger.warning(f"[PUSH] Delivery to subscription {subscription['id']} failed ({e.status_code}): {e}")
        if e.status_code in _GONE_STATUSES:
            delete_subscription(subscription["endpoint"])
            logger.info(f"[PUSH] Removed expired subscription {subscription['id']}")
        return False
    except Exception as e:
        # Transport errors: keep the subscription
        logger.warning(f"[PUSH] Delivery to subscription {subscription['id']} errored: {e!r}")
        return False


async def send_push(title: str, body: str, icon: str | None = None,
                    target_url: str | None = None, user_id: int | None = None) -> dict:
    """Send one message to an account's subscriptions, or to every viewer's."""
    if not is_configured():
        logger.info("[PUSH] VAPID keys not configured, skipping")
        return {"configured": False, "sent": 0, "total": 0}

    subscriptions = subscriptions_for(user_id)
    if not subscriptions:
        return {"configured": True, "sent": 0, "total": 0}

    data = json.dumps({
        "title": title,
        "body": body,
        "icon": icon or config.NOTIFICATION_ICON,
        "badge": icon or config.NOTIFICATION_ICON,
        "targetUrl": target_url or config.NOTIFICATION_URL,
        "timestamp": int(time.time() * 1000),
    })

    results = await asyncio.gather(*(_send_one(sub, data) for sub in subscriptions))
    sent = sum(1 for ok in results if ok)
    logger.info(f"[PUSH] Sent {sent}/{len(subscriptions)} notifications")
    return {"configured": True, "sent": sent, "total": len(subscriptions)}


async def notify_new_reel(reel: dict, payload) -> dict:
    """Broadcast a newly resolved reel to every viewer."""
    label = payload.title or payload.caption or reel["shortcode"]
    if len(label) > 80:
        label = label[:77] + "..."
    return await send_push(
        title="New Reel Shared!",
        body=f"Check out this new reel: {label}",
        target_url=config.NOTIFICATION_URL,
    )
