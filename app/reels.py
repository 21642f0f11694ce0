"""
Reel records: one row per submitted shortcode.

Status starts at ``pending`` and is written to ``success`` or ``failed`` exactly
once; the terminal updates are conditional on the row still being pending, so a
late or repeated write is a no-op. Only an explicit retry moves a failed record
back to pending.
"""
from datetime import datetime, timedelta, timezone

from app.database import get_db, integrity_errors
from app.scrapers import ReelPayload

STATUSES = ("pending", "success", "failed")

_SELECT = (
    "SELECT reels.*, users.username AS submitter_username "
    "FROM reels LEFT JOIN users ON users.id = reels.submitted_by"
)


class DuplicateReel(Exception):
    def __init__(self, existing: dict):
        super().__init__(f"Reel {existing['shortcode']} has already been shared")
        self.existing = existing


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _where(status: str | None, submitted_by: int | None) -> tuple[str, list]:
    clauses, params = [], []
    if status:
        clauses.append("reels.status = ?")
        params.append(status)
    if submitted_by is not None:
        clauses.append("reels.submitted_by = ?")
        params.append(submitted_by)
    return (" WHERE " + " AND ".join(clauses)) if clauses else "", params


def get_reel(reel_id: int) -> dict | None:
    conn = get_db()
    try:
        row = conn.execute(f"{_SELECT} WHERE reels.id = ?", (reel_id,)).fetchone()
    finally:
        conn.close()
    return dict(row) if row else None


def get_reel_by_shortcode(shortcode: str) -> dict | None:
    conn = get_db()
    try:
        row = conn.execute(f"{_SELECT} WHERE reels.shortcode = ?", (shortcode,)).fetchone()
    finally:
        conn.close()
    return dict(row) if row else None


def create_reel(source_url: str, shortcode: str, submitted_by: int) -> dict:
    """Insert a pending record. Shortcodes are unique across all senders."""
    existing = get_reel_by_shortcode(shortcode)
    if existing:
        raise DuplicateReel(existing)

    conn = get_db()
    try:
        conn.execute(
            "INSERT INTO reels (source_url, shortcode, submitted_by, status) VALUES (?, ?, ?, 'pending')",
            (source_url, shortcode, submitted_by),
        )
        conn.commit()
    except integrity_errors():
        # A concurrent submission inserted the same shortcode after the check above
        conn.close()
        existing = get_reel_by_shortcode(shortcode)
        if not existing:
            raise
        raise DuplicateReel(existing)
    finally:
        conn.close()
    return get_reel_by_shortcode(shortcode)


def list_reels(status: str | None = None, submitted_by: int | None = None,
               limit: int = 50, skip: int = 0, oldest_first: bool = False) -> list[dict]:
    """Newest first, or oldest first for queue-style processing."""
    where, params = _where(status, submitted_by)
    order = "ASC" if oldest_first else "DESC"
    conn = get_db()
    try:
        rows = conn.execute(
            f"{_SELECT}{where} ORDER BY reels.created_at {order}, reels.id {order} LIMIT ? OFFSET ?",
            params + [limit, skip],
        ).fetchall()
    finally:
        conn.close()
    return [dict(r) for r in rows]


def count_reels(status: str | None = None, submitted_by: int | None = None) -> int:
    where, params = _where(status, submitted_by)
    conn = get_db()
    try:
        row = conn.execute(f"SELECT COUNT(*) AS n FROM reels{where}", params).fetchone()
    finally:
        conn.close()
    return row["n"]


def _terminal_update(sql: str, params: tuple) -> bool:
    conn = get_db()
    try:
        cur = conn.execute(sql, params)
        conn.commit()
        return cur.rowcount == 1
    finally:
        conn.close()


def mark_success(reel_id: int, payload: ReelPayload) -> bool:
    """pending → success. Returns False if the record was not pending."""
    return _terminal_update(
        "UPDATE reels SET status = 'success', payload = ?, failure_message = NULL, "
        "failure_category = NULL, resolved_at = ? WHERE id = ? AND status = 'pending'",
        (payload.model_dump_json(by_alias=True), _utc_now(), reel_id),
    )


def mark_failed(reel_id: int, message: str, category: str) -> bool:
    """pending → failed. Returns False if the record was not pending."""
    return _terminal_update(
        "UPDATE reels SET status = 'failed', payload = NULL, failure_message = ?, "
        "failure_category = ?, resolved_at = ? WHERE id = ? AND status = 'pending'",
        (message or "Unknown error", category, _utc_now(), reel_id),
    )


def reset_for_retry(reel_id: int) -> bool:
    """failed → pending, for an explicit retry only."""
    return _terminal_update(
        "UPDATE reels SET status = 'pending', failure_message = NULL, failure_category = NULL, "
        "resolved_at = NULL WHERE id = ? AND status = 'failed'",
        (reel_id,),
    )


def increment_view_count(reel_id: int) -> None:
    conn = get_db()
    try:
        conn.execute("UPDATE reels SET view_count = view_count + 1 WHERE id = ?", (reel_id,))
        conn.commit()
    finally:
        conn.close()


def delete_reel(reel_id: int, submitted_by: int) -> bool:
    """Only the submitter may delete their own record."""
    conn = get_db()
    try:
        cur = conn.execute("DELETE FROM reels WHERE id = ? AND submitted_by = ?", (reel_id, submitted_by))
        conn.commit()
        return cur.rowcount == 1
    finally:
        conn.close()


def sender_stats(user_id: int) -> dict:
    conn = get_db()
    try:
        rows = conn.execute(
            "SELECT status, COUNT(*) AS n, COALESCE(SUM(view_count), 0) AS views "
            "FROM reels WHERE submitted_by = ? GROUP BY status",
            (user_id,),
        ).fetchall()
    finally:
        conn.close()
    counts = {status: 0 for status in STATUSES}
    views = 0
    for row in rows:
        counts[row["status"]] = row["n"]
        views += row["views"]
    return {
        "totalShared": sum(counts.values()),
        "successfulShares": counts["success"],
        "pendingShares": counts["pending"],
        "failedShares": counts["failed"],
        "totalViews": views,
    }


def viewer_stats() -> dict:
    since = (datetime.now(timezone.utc) - timedelta(days=1)).strftime("%Y-%m-%d %H:%M:%S")
    conn = get_db()
    try:
        available = conn.execute("SELECT COUNT(*) AS n FROM reels WHERE status = 'success'").fetchone()
        senders = conn.execute("SELECT COUNT(DISTINCT submitted_by) AS n FROM reels").fetchone()
        recent = conn.execute(
            "SELECT COUNT(*) AS n FROM reels WHERE status = 'success' AND created_at >= ?",
            (since,),
        ).fetchone()
    finally:
        conn.close()
    return {
        "totalReelsAvailable": available["n"],
        "totalSenders": senders["n"],
        "recentReels": recent["n"],
    }


def _timestamp(value):
    return value.isoformat() if hasattr(value, "isoformat") else value


def serialize_reel(reel: dict) -> dict:
    """Client-facing JSON shape of a record."""
    payload = None
    if reel.get("payload"):
        payload = ReelPayload.model_validate_json(reel["payload"]).model_dump(mode="json", by_alias=True)
    failure = None
    if reel.get("failure_message"):
        failure = {"message": reel["failure_message"], "category": reel.get("failure_category")}
    return {
        "id": reel["id"],
        "sourceUrl": reel["source_url"],
        "identifier": reel["shortcode"],
        "submittedBy": {"id": reel["submitted_by"], "username": reel.get("submitter_username")},
        "status": reel["status"],
        "payload": payload,
        "failureReason": failure,
        "viewCount": reel["view_count"],
        "createdAt": _timestamp(reel.get("created_at")),
        "resolvedAt": _timestamp(reel.get("resolved_at")),
    }
