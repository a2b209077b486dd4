"""
Web push router: browser subscriptions (VAPID) and admin notification sends.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from app.deps import AdminCaller, CurrentCaller, Subscriptions, WebPushDispatcher
from app.schemas import DispatchReportOut, SendNotificationRequest, SubscribeRequest, SubscriptionOut
from app.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/push", tags=["push"])


def _subscription_json(subscription) -> dict:
    return SubscriptionOut.model_validate(subscription).model_dump(by_alias=True, mode="json")


@router.get("/vapid-public-key")
async def get_vapid_public_key():
    """Get the VAPID public key for push subscription. No auth: the key is public."""
    if not settings.vapid_public_key:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Push notifications not configured",
        )
    return JSONResponse({"success": True, "data": {"publicKey": settings.vapid_public_key}})


@router.post("/subscribe", status_code=status.HTTP_201_CREATED)
async def subscribe(
    body: SubscribeRequest,
    caller: CurrentCaller,
    subscriptions: Subscriptions,
):
    """Subscribe this browser to push notifications."""
    subscription = await subscriptions.subscribe(
        caller.user_id,
        str(body.endpoint),
        body.keys.p256dh,
        body.keys.auth,
        body.user_agent,
    )
    return JSONResponse(
        {
            "success": True,
            "data": _subscription_json(subscription),
            "message": "Subscription saved",
        },
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/my-subscriptions")
async def get_my_subscriptions(
    caller: CurrentCaller,
    subscriptions: Subscriptions,
):
    rows = await subscriptions.list_mine(caller.user_id)
    return JSONResponse({
        "success": True,
        "data": [_subscription_json(s) for s in rows],
    })


@router.delete("/unsubscribe-all")
async def unsubscribe_all(
    caller: CurrentCaller,
    subscriptions: Subscriptions,
):
    count = await subscriptions.delete_all_mine(caller.user_id)
    return JSONResponse({
        "success": True,
        "message": "All subscriptions deleted",
        "count": count,
    })


@router.delete("/unsubscribe/{subscription_id}")
async def unsubscribe(
    subscription_id: str,
    caller: CurrentCaller,
    subscriptions: Subscriptions,
):
    """Delete one subscription. Owners may delete their own; admins any."""
    await subscriptions.delete_one(caller.user_id, caller.role, subscription_id)
    return JSONResponse({"success": True, "message": "Subscription deleted"})


@router.post("/send")
async def send_notification(
    body: SendNotificationRequest,
    admin: AdminCaller,
    dispatcher: WebPushDispatcher,
):
    """Send a web push notification to the given users, or to every subscriber."""
    logger.info(
        "Web push send requested",
        extra={"event": "webpush_send_requested", "admin_id": admin.user_id, "user_ids": body.user_ids},
    )
    report = await dispatcher.dispatch(body.user_ids, body.to_payload())
    return JSONResponse({
        "success": True,
        "data": DispatchReportOut.from_report(report).model_dump(),
        "message": report.message,
    })
