"""
Push delivery providers.

A provider delivers one message to one endpoint address: an FCM
registration token, or a web push subscription info dict. ``send``
returns the provider's message id on success and raises a
``DeliveryError`` subclass otherwise, so the dispatch engine can decide
whether to prune the endpoint.
"""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import firebase_admin
from firebase_admin import credentials, exceptions, messaging
from pywebpush import WebPushException, webpush

from app.errors import PermanentInvalidEndpoint, ProviderUnavailable, TransientDeliveryFailure
from app.settings import Settings

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "fieldops-push"

# Push services answer these for expired or unsubscribed endpoints
GONE_STATUSES = (404, 410)


@dataclass(frozen=True)
class NotificationPayload:
    """Content shared by every message of one dispatch."""

    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)
    image_url: str | None = None


class DeliveryProvider(ABC):
    """Delivers one message to one endpoint."""

    name: str = "provider"

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def send(self, address: Any, payload: NotificationPayload) -> str:
        ...


class UnavailableProvider(DeliveryProvider):
    """Stands in when no backend is configured; every send is refused."""

    name = "unavailable"

    def __init__(self, reason: str = "Push provider is not configured"):
        self.reason = reason

    @property
    def available(self) -> bool:
        return False

    async def send(self, address: Any, payload: NotificationPayload) -> str:
        raise ProviderUnavailable(self.reason)


class FirebaseProvider(DeliveryProvider):
    """Firebase Cloud Messaging via the Admin SDK."""

    name = "fcm"

    def __init__(self, app: firebase_admin.App):
        self.app = app

    @classmethod
    def from_credentials(cls, credentials_path: str, project_id: str | None = None) -> "FirebaseProvider":
        try:
            app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            cred = credentials.Certificate(credentials_path)
            options = {"projectId": project_id} if project_id else None
            app = firebase_admin.initialize_app(cred, options=options, name=FIREBASE_APP_NAME)
        return cls(app)

    @staticmethod
    def build_message(token: str, payload: NotificationPayload) -> messaging.Message:
        return messaging.Message(
            notification=messaging.Notification(
                title=payload.title,
                body=payload.body,
                image=payload.image_url,
            ),
            data={k: str(v) for k, v in payload.data.items()},
            token=token,
        )

    async def send(self, token: str, payload: NotificationPayload) -> str:
        message = self.build_message(token, payload)
        try:
            # The Admin SDK is blocking
            return await asyncio.to_thread(messaging.send, message, app=self.app)
        except messaging.UnregisteredError as exc:
            raise PermanentInvalidEndpoint(str(exc), code="registration-token-not-registered") from exc
        except exceptions.InvalidArgumentError as exc:
            if "registration token" in str(exc).lower():
                raise PermanentInvalidEndpoint(str(exc), code="invalid-registration-token") from exc
            raise TransientDeliveryFailure(str(exc), code=exc.code) from exc
        except exceptions.FirebaseError as exc:
            raise TransientDeliveryFailure(str(exc), code=exc.code) from exc


class WebPushProvider(DeliveryProvider):
    """Browser web push signed with the server's VAPID key."""

    name = "webpush"

    def __init__(self, vapid_private_key: str, vapid_contact_email: str):
        self.vapid_private_key = vapid_private_key
        self.vapid_claims = {"sub": f"mailto:{vapid_contact_email}"}

    @staticmethod
    def build_data(payload: NotificationPayload) -> str:
        data = {"title": payload.title, "body": payload.body, "data": dict(payload.data)}
        if payload.image_url:
            data["image"] = payload.image_url
        return json.dumps(data)

    async def send(self, subscription_info: dict, payload: NotificationPayload) -> str:
        try:
            # pywebpush is blocking and fills in aud/exp on the claims it gets
            response = await asyncio.to_thread(
                webpush,
                subscription_info=subscription_info,
                data=self.build_data(payload),
                vapid_private_key=self.vapid_private_key,
                vapid_claims=dict(self.vapid_claims),
            )
        except WebPushException as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            code = f"http-{status_code}" if status_code else None
            if status_code in GONE_STATUSES:
                raise PermanentInvalidEndpoint(str(exc), code=code) from exc
            raise TransientDeliveryFailure(str(exc), code=code) from exc
        return str(response.status_code)


def build_provider(settings: Settings) -> DeliveryProvider:
    """Create the configured FCM provider, or an unavailable one if setup fails."""
    path = (settings.firebase_credentials_path or "").strip()
    if not path:
        logger.warning("Push notifications disabled - FIREBASE_CREDENTIALS_PATH not set")
        return UnavailableProvider()
    if not os.path.exists(path):
        logger.warning("Push notifications disabled - service account not found at %s", path)
        return UnavailableProvider(f"Service account not found: {path}")

    try:
        provider = FirebaseProvider.from_credentials(path, settings.firebase_project_id)
    except (ValueError, OSError, exceptions.FirebaseError) as exc:
        logger.exception("Push notifications disabled - Firebase initialization failed")
        return UnavailableProvider(f"Firebase initialization failed: {exc}")

    logger.info("Push notifications enabled - Firebase Admin initialized")
    return provider


def build_webpush_provider(settings: Settings) -> DeliveryProvider:
    """Create the web push provider, or an unavailable one without VAPID keys."""
    if not settings.webpush_enabled:
        logger.warning("Web push disabled - VAPID keys not configured")
        return UnavailableProvider("VAPID keys not configured")

    logger.info("Web push enabled - VAPID keys configured")
    return WebPushProvider(settings.vapid_private_key, settings.vapid_contact_email)
