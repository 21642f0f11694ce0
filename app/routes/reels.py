import logging
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from app import config, reels
from app.reels import DuplicateReel, serialize_reel
from app.routes.auth import current_user, require_sender
from app.scrapers import INVALID_URL, ResolutionFailure, extract_shortcode, reel_url, resolve_reel
from app.tasks import process_reel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reels", tags=["reels"])


class SubmitRequest(BaseModel):
    source_url: str = Field(alias="sourceUrl")


class BulkSubmitRequest(BaseModel):
    source_urls: list[str] = Field(alias="sourceUrls", max_length=config.BULK_MAX_ENTRIES)


class PreviewRequest(BaseModel):
    url: str


@router.post("", status_code=202)
async def submit_reel(body: SubmitRequest, background_tasks: BackgroundTasks,
                      user: dict = Depends(require_sender)):
    source_url = body.source_url.strip()
    if not source_url:
        raise HTTPException(status_code=400, detail="Reel URL is required")

    shortcode = extract_shortcode(source_url)
    if not shortcode:
        raise HTTPException(status_code=400, detail="Invalid Instagram URL: could not extract shortcode")
    if source_url == shortcode:
        source_url = reel_url(shortcode)

    try:
        reel = reels.create_reel(source_url, shortcode, user["id"])
    except DuplicateReel:
        raise HTTPException(status_code=409, detail="This reel has already been shared")

    background_tasks.add_task(process_reel, reel["id"])
    logger.info(f"[REELS] {user['username']} shared {shortcode}, scraping in background")
    return {
        "message": "Reel shared successfully. Fetching data in background...",
        "id": reel["id"],
        "identifier": shortcode,
        "status": reel["status"],
    }


@router.post("/bulk", status_code=202)
async def bulk_submit(body: BulkSubmitRequest, background_tasks: BackgroundTasks,
                      user: dict = Depends(require_sender)):
    """
    Queue many reels at once. Malformed entries and duplicates are reported per
    item and skipped; more well-formed entries than the limit rejects the batch.
    """
    if not body.source_urls:
        raise HTTPException(status_code=400, detail="sourceUrls must be a non-empty list")

    errors: list[str] = []
    candidates: list[tuple[str, str]] = []
    for entry in body.source_urls:
        shortcode = extract_shortcode(entry or "")
        if not shortcode:
            errors.append(f"Invalid shortcode format: {entry}")
            continue
        candidates.append((entry.strip(), shortcode))

    if len(candidates) > config.BULK_IMPORT_LIMIT:
        raise HTTPException(
            status_code=400,
            detail=f"Maximum {config.BULK_IMPORT_LIMIT} reels allowed at once",
        )

    accepted = []
    seen: set[str] = set()
    for entry, shortcode in candidates:
        if shortcode in seen:
            errors.append(f"Already imported: {shortcode}")
            continue
        seen.add(shortcode)

        source_url = reel_url(shortcode) if entry == shortcode else entry
        try:
            reel = reels.create_reel(source_url, shortcode, user["id"])
        except DuplicateReel:
            errors.append(f"Already imported: {shortcode}")
            continue

        background_tasks.add_task(process_reel, reel["id"], False)
        accepted.append({"id": reel["id"], "identifier": shortcode, "status": reel["status"]})

    logger.info(f"[REELS] Bulk import by {user['username']}: {len(accepted)} queued, {len(errors)} rejected")
    return {
        "message": f"Bulk import queued: {len(accepted)} reels",
        "total": len(body.source_urls),
        "accepted": len(accepted),
        "rejected": len(errors),
        "errors": errors,
        "reels": accepted,
    }


@router.post("/preview")
async def preview_reel(body: PreviewRequest, user: dict = Depends(current_user)):
    """Resolve a reel on demand without storing it."""
    try:
        payload = await resolve_reel(body.url.strip())
    except ResolutionFailure as e:
        status_code = 400 if e.category == INVALID_URL else 502
        raise HTTPException(status_code=status_code, detail={"message": e.message, "category": e.category})

    logger.info(f"[REELS] Preview of {payload.shortcode} via {payload.method} for {user['username']}")
    return {"success": True, "data": payload.model_dump(by_alias=True)}


@router.get("")
async def list_reels(
    status: Optional[Literal["pending", "success", "failed"]] = None,
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    user: dict = Depends(current_user),
):
    rows = reels.list_reels(status=status, limit=limit, skip=skip)
    return {
        "count": len(rows),
        "total": reels.count_reels(status=status),
        "reels": [serialize_reel(r) for r in rows],
    }


@router.get("/mine")
async def my_reels(
    status: Optional[Literal["pending", "success", "failed"]] = None,
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    user: dict = Depends(require_sender),
):
    rows = reels.list_reels(status=status, submitted_by=user["id"], limit=limit, skip=skip)
    stats = reels.sender_stats(user["id"])
    return {
        "count": len(rows),
        "total": reels.count_reels(status=status, submitted_by=user["id"]),
        "stats": {
            "total": stats["totalShared"],
            "success": stats["successfulShares"],
            "pending": stats["pendingShares"],
            "failed": stats["failedShares"],
        },
        "reels": [serialize_reel(r) for r in rows],
    }


@router.get("/stats")
async def statistics(user: dict = Depends(current_user)):
    if user["role"] == "sender":
        return {"stats": reels.sender_stats(user["id"])}
    return {"stats": reels.viewer_stats()}


@router.get("/{reel_id}")
async def get_reel(reel_id: int, user: dict = Depends(current_user)):
    reel = reels.get_reel(reel_id)
    if not reel:
        raise HTTPException(status_code=404, detail="Shared reel not found")

    if user["role"] == "viewer":
        reels.increment_view_count(reel_id)
        reel["view_count"] += 1
    return {"reel": serialize_reel(reel)}


@router.post("/{reel_id}/retry", status_code=202)
async def retry_reel(reel_id: int, background_tasks: BackgroundTasks, user: dict = Depends(require_sender)):
    reel = reels.get_reel(reel_id)
    if not reel or reel["submitted_by"] != user["id"]:
        raise HTTPException(status_code=404, detail="Shared reel not found")
    if not reels.reset_for_retry(reel_id):
        raise HTTPException(status_code=409, detail=f"Only failed reels can be retried (status: {reel['status']})")

    background_tasks.add_task(process_reel, reel_id)
    return {"message": "Retrying in background...", "id": reel_id, "identifier": reel["shortcode"], "status": "pending"}


@router.delete("/{reel_id}")
async def delete_reel(reel_id: int, user: dict = Depends(require_sender)):
    if not reels.delete_reel(reel_id, user["id"]):
        raise HTTPException(
            status_code=404,
            detail="Shared reel not found or you do not have permission to delete it",
        )
    return {"success": True}
