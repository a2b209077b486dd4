"""Tests for push provider classification and setup."""

import json
from types import SimpleNamespace

import pytest
from firebase_admin import exceptions, messaging
from pywebpush import WebPushException

from app.errors import PermanentInvalidEndpoint, ProviderUnavailable, TransientDeliveryFailure
from app.services import providers
from app.services.providers import (
    FirebaseProvider,
    NotificationPayload,
    UnavailableProvider,
    WebPushProvider,
    build_provider,
    build_webpush_provider,
)
from app.settings import Settings

PAYLOAD = NotificationPayload(
    title="Pedido listo",
    body="El pedido 1024 está listo para entrega",
    data={"orderId": "1024"},
    image_url="https://example.com/pedido.png",
)


@pytest.fixture
def firebase(monkeypatch):
    """FirebaseProvider whose messaging.send is scripted per test."""
    sent = []

    def install(result):
        def fake_send(message, dry_run=False, app=None):
            sent.append(message)
            if isinstance(result, Exception):
                raise result
            return result

        monkeypatch.setattr(messaging, "send", fake_send)
        return FirebaseProvider(app=object()), sent

    return install


class TestFirebaseProvider:

    def test_build_message_maps_payload(self):
        message = FirebaseProvider.build_message("T1", PAYLOAD)

        assert message.token == "T1"
        assert message.notification.title == "Pedido listo"
        assert message.notification.image == "https://example.com/pedido.png"
        assert message.data == {"orderId": "1024"}

    @pytest.mark.asyncio
    async def test_success_returns_message_id(self, firebase):
        provider, sent = firebase("projects/demo/messages/1")

        assert await provider.send("T1", PAYLOAD) == "projects/demo/messages/1"
        assert sent[0].token == "T1"

    @pytest.mark.asyncio
    async def test_unregistered_token_is_permanent(self, firebase):
        provider, _ = firebase(messaging.UnregisteredError("Requested entity was not found."))

        with pytest.raises(PermanentInvalidEndpoint) as exc_info:
            await provider.send("T1", PAYLOAD)
        assert exc_info.value.code == "registration-token-not-registered"

    @pytest.mark.asyncio
    async def test_malformed_token_is_permanent(self, firebase):
        provider, _ = firebase(exceptions.InvalidArgumentError(
            "The registration token is not a valid FCM registration token"
        ))

        with pytest.raises(PermanentInvalidEndpoint) as exc_info:
            await provider.send("bogus", PAYLOAD)
        assert exc_info.value.code == "invalid-registration-token"

    @pytest.mark.asyncio
    async def test_other_invalid_argument_is_transient(self, firebase):
        provider, _ = firebase(exceptions.InvalidArgumentError("Invalid JSON payload received."))

        with pytest.raises(TransientDeliveryFailure):
            await provider.send("T1", PAYLOAD)

    @pytest.mark.asyncio
    async def test_quota_error_is_transient(self, firebase):
        provider, _ = firebase(messaging.QuotaExceededError("Sending limit exceeded."))

        with pytest.raises(TransientDeliveryFailure) as exc_info:
            await provider.send("T1", PAYLOAD)
        assert exc_info.value.code == exceptions.RESOURCE_EXHAUSTED

    @pytest.mark.asyncio
    async def test_unavailable_backend_is_transient(self, firebase):
        provider, _ = firebase(exceptions.UnavailableError("Service unavailable"))

        with pytest.raises(TransientDeliveryFailure):
            await provider.send("T1", PAYLOAD)


class TestUnavailableProvider:

    @pytest.mark.asyncio
    async def test_refuses_every_send(self):
        provider = UnavailableProvider("not configured")

        assert provider.available is False
        with pytest.raises(ProviderUnavailable):
            await provider.send("T1", PAYLOAD)


class TestBuildProvider:

    def test_missing_credentials_path(self):
        provider = build_provider(Settings(firebase_credentials_path=None))

        assert isinstance(provider, UnavailableProvider)

    def test_credentials_file_not_found(self, tmp_path):
        missing = tmp_path / "firebase-adminsdk.json"

        provider = build_provider(Settings(firebase_credentials_path=str(missing)))

        assert isinstance(provider, UnavailableProvider)
        assert str(missing) in provider.reason

    def test_unreadable_credentials_fall_back(self, tmp_path):
        bad = tmp_path / "firebase-adminsdk.json"
        bad.write_text("{}")

        provider = build_provider(Settings(firebase_credentials_path=str(bad)))

        assert isinstance(provider, UnavailableProvider)


SUBSCRIPTION = {
    "endpoint": "https://fcm.googleapis.com/fcm/send/dGVzdA",
    "keys": {"p256dh": "BPUBLIC", "auth": "AUTHSECRET"},
}


def push_failure(status_code):
    response = SimpleNamespace(status_code=status_code, text="push service says no") if status_code else None
    return WebPushException(f"Push failed: {status_code}", response=response)


@pytest.fixture
def webpush_send(monkeypatch):
    """WebPushProvider whose pywebpush call is scripted per test."""
    calls = []

    def install(result):
        def fake_webpush(subscription_info, data=None, vapid_private_key=None, vapid_claims=None, **kwargs):
            calls.append({"subscription_info": subscription_info, "data": data, "vapid_claims": vapid_claims})
            # pywebpush writes aud/exp into the claims it is given
            vapid_claims["aud"] = "https://fcm.googleapis.com"
            if isinstance(result, Exception):
                raise result
            return SimpleNamespace(status_code=result)

        monkeypatch.setattr(providers, "webpush", fake_webpush)
        return WebPushProvider("private-key", "ops@example.com"), calls

    return install


class TestWebPushProvider:

    def test_build_data_is_json_payload(self):
        data = json.loads(WebPushProvider.build_data(PAYLOAD))

        assert data == {
            "title": "Pedido listo",
            "body": "El pedido 1024 está listo para entrega",
            "data": {"orderId": "1024"},
            "image": "https://example.com/pedido.png",
        }

    @pytest.mark.asyncio
    async def test_success_returns_status(self, webpush_send):
        provider, calls = webpush_send(201)

        assert await provider.send(SUBSCRIPTION, PAYLOAD) == "201"
        assert calls[0]["subscription_info"] == SUBSCRIPTION
        assert calls[0]["vapid_claims"]["sub"] == "mailto:ops@example.com"

    @pytest.mark.asyncio
    async def test_claims_are_not_shared_between_sends(self, webpush_send):
        provider, _ = webpush_send(201)

        await provider.send(SUBSCRIPTION, PAYLOAD)

        assert provider.vapid_claims == {"sub": "mailto:ops@example.com"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [404, 410])
    async def test_gone_subscription_is_permanent(self, webpush_send, status_code):
        provider, _ = webpush_send(push_failure(status_code))

        with pytest.raises(PermanentInvalidEndpoint) as exc_info:
            await provider.send(SUBSCRIPTION, PAYLOAD)
        assert exc_info.value.code == f"http-{status_code}"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [413, 429, 500, None])
    async def test_other_failures_are_transient(self, webpush_send, status_code):
        provider, _ = webpush_send(push_failure(status_code))

        with pytest.raises(TransientDeliveryFailure):
            await provider.send(SUBSCRIPTION, PAYLOAD)


class TestBuildWebPushProvider:

    def test_missing_vapid_keys(self):
        provider = build_webpush_provider(Settings(vapid_public_key="BPUBLIC", vapid_private_key=None))

        assert isinstance(provider, UnavailableProvider)
        assert provider.available is False

    def test_configured_keys(self):
        provider = build_webpush_provider(
            Settings(vapid_public_key="BPUBLIC", vapid_private_key="private", vapid_contact_email="ops@example.com")
        )

        assert isinstance(provider, WebPushProvider)
        assert provider.vapid_claims == {"sub": "mailto:ops@example.com"}
