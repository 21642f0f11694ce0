from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app import config, notifications
from app.routes.auth import current_user, require_sender

router = APIRouter(prefix="/api/push", tags=["push"])


class SubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class Subscription(BaseModel):
    endpoint: str
    keys: SubscriptionKeys


class SubscribeRequest(BaseModel):
    subscription: Subscription
    user_agent: str = Field("", alias="userAgent")


class UnsubscribeRequest(BaseModel):
    endpoint: str


class SendRequest(BaseModel):
    title: str = "New Reel Shared!"
    body: str = "A new Instagram reel has been shared with you"
    icon: Optional[str] = None
    target_url: Optional[str] = Field(None, alias="targetUrl")
    user_id: Optional[int] = Field(None, alias="userId")


@router.get("/public-key")
async def public_key():
    return {"publicKey": config.VAPID_PUBLIC_KEY, "configured": notifications.is_configured()}


@router.post("/subscribe")
async def subscribe(body: SubscribeRequest, user: dict = Depends(current_user)):
    if not body.subscription.endpoint.startswith("https://"):
        raise HTTPException(status_code=400, detail="Subscription endpoint must be an https URL")
    notifications.save_subscription(
        user["id"],
        body.subscription.endpoint,
        body.subscription.keys.p256dh,
        body.subscription.keys.auth,
        body.user_agent,
    )
    return {"success": True, "message": "Push notification subscription saved"}


@router.delete("/subscribe")
async def unsubscribe(body: UnsubscribeRequest, user: dict = Depends(current_user)):
    removed = notifications.delete_subscription(body.endpoint, user["id"])
    return {"success": True, "removed": removed, "message": "Push notification subscription removed"}


@router.post("/send")
async def send(body: SendRequest, user: dict = Depends(require_sender)):
    result = await notifications.send_push(
        title=body.title,
        body=body.body,
        icon=body.icon,
        target_url=body.target_url,
        user_id=body.user_id,
    )
    return {"success": True, **result}
