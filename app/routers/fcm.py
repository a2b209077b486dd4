"""
FCM router: device token registration and admin notification sends.
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app.deps import AdminCaller, CurrentCaller, Dispatcher, Provider, Registrar
from app.schemas import DispatchReportOut, SaveTokenRequest, SendNotificationRequest, TokenOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/fcm", tags=["fcm"])


def _token_json(registration) -> dict:
    return TokenOut.model_validate(registration).model_dump(by_alias=True, mode="json")


@router.post("/token", status_code=status.HTTP_201_CREATED)
async def save_token(
    body: SaveTokenRequest,
    caller: CurrentCaller,
    registrar: Registrar,
):
    """Register, reassign or refresh the caller's device token."""
    registration = await registrar.register(caller.user_id, body.token, body.device_info)
    return JSONResponse(
        {
            "success": True,
            "data": _token_json(registration),
            "message": "FCM token saved",
        },
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/tokens")
async def get_my_tokens(
    caller: CurrentCaller,
    registrar: Registrar,
):
    """List the caller's own device tokens."""
    registrations = await registrar.list_mine(caller.user_id)
    return JSONResponse({
        "success": True,
        "data": [_token_json(r) for r in registrations],
    })


@router.delete("/token/{token_id}")
async def delete_token(
    token_id: str,
    caller: CurrentCaller,
    registrar: Registrar,
):
    """Delete one token. Owners may delete their own; admins any."""
    await registrar.delete_one(caller.user_id, caller.role, token_id)
    return JSONResponse({"success": True, "message": "Token deleted"})


@router.delete("/tokens")
async def delete_all_tokens(
    caller: CurrentCaller,
    registrar: Registrar,
):
    """Delete every token owned by the caller."""
    count = await registrar.delete_all_mine(caller.user_id)
    return JSONResponse({
        "success": True,
        "message": "All tokens deleted",
        "count": count,
    })


@router.post("/send")
async def send_notification(
    body: SendNotificationRequest,
    admin: AdminCaller,
    dispatcher: Dispatcher,
):
    """Send a notification to the given users, or to everyone if none are given.

    Always answers 200 with the per-recipient counts, even if every
    delivery failed.
    """
    logger.info(
        "Notification send requested",
        extra={"event": "fcm_send_requested", "admin_id": admin.user_id, "user_ids": body.user_ids},
    )
    report = await dispatcher.dispatch(body.user_ids, body.to_payload())
    return JSONResponse({
        "success": True,
        "data": DispatchReportOut.from_report(report).model_dump(),
        "message": report.message,
    })


@router.get("/status")
async def get_push_status(
    caller: CurrentCaller,
    registrar: Registrar,
    provider: Provider,
):
    """Provider availability and the caller's token count, for debugging."""
    registrations = await registrar.list_mine(caller.user_id)
    return JSONResponse({
        "success": True,
        "data": {
            "provider": provider.name,
            "available": provider.available,
            "tokenCount": len(registrations),
        },
    })
