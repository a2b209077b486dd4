"""
Registration, listing and removal of push endpoints on behalf of a caller.
"""

import logging

from app.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.device_token import DeviceToken
from app.models.push_subscription import PushSubscription
from app.models.user import UserRole
from app.services.accounts import AccountDirectory
from app.services.token_store import RegistrationStore, SubscriptionStore, TokenStore

logger = logging.getLogger(__name__)


class OwnedRegistrar:
    """Ownership rules shared by both endpoint kinds.

    ``label`` names the endpoint in messages; ``event_prefix`` prefixes
    the ``event`` field of log records.
    """

    label = "Endpoint"
    event_prefix = "endpoint"

    def __init__(self, store: RegistrationStore, accounts: AccountDirectory):
        self.store = store
        self.accounts = accounts

    async def _resolve_caller(self, caller_id: str):
        user = await self.accounts.resolve(caller_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _log_registration(self, registration, owner_id: str, previous_owner: str | None) -> None:
        event = self.event_prefix
        if previous_owner is None:
            logger.info(
                "%s registered",
                self.label,
                extra={"event": f"{event}_registered", "registration_id": registration.id, "owner_id": owner_id},
            )
        elif previous_owner != owner_id:
            # Silent reassignment: the previous owner is not notified
            logger.warning(
                "%s reassigned to another user",
                self.label,
                extra={
                    "event": f"{event}_reassigned",
                    "registration_id": registration.id,
                    "owner_id": owner_id,
                    "previous_owner_id": previous_owner,
                },
            )
        else:
            logger.debug(
                "%s refreshed",
                self.label,
                extra={"event": f"{event}_refreshed", "registration_id": registration.id, "owner_id": owner_id},
            )

    async def list_mine(self, caller_id: str) -> list:
        return await self.store.list_by_owner(caller_id)

    async def delete_one(self, caller_id: str, caller_role: str, registration_id: str) -> None:
        registration = await self.store.find_by_id(registration_id)
        if registration is None:
            raise NotFoundError(f"{self.label} not found")

        if caller_role != UserRole.ADMIN and registration.user_id != caller_id:
            raise ForbiddenError(f"You do not have permission to delete this {self.label.lower()}")

        await self.store.delete_by_id(registration_id)
        await self.store.commit()
        logger.info(
            "%s deleted",
            self.label,
            extra={
                "event": f"{self.event_prefix}_deleted",
                "registration_id": registration_id,
                "owner_id": registration.user_id,
                "deleted_by": caller_id,
            },
        )

    async def delete_all_mine(self, caller_id: str) -> int:
        count = await self.store.delete_by_owner(caller_id)
        await self.store.commit()
        logger.info(
            "%ss deleted for user",
            self.label,
            extra={"event": f"{self.event_prefix}s_cleared", "owner_id": caller_id, "count": count},
        )
        return count


class TokenRegistrar(OwnedRegistrar):
    """Applies ownership rules on top of the token store."""

    label = "Token"
    event_prefix = "fcm_token"

    store: TokenStore

    async def register(
        self,
        caller_id: str,
        token: str,
        device_info: str | None = None,
    ) -> DeviceToken:
        """Register ``token`` for the caller.

        A token already held by another account moves to the caller
        (device hand-off or reinstall). Calling again with the same
        arguments only refreshes ``updated_at``.
        """
        token = (token or "").strip()
        if not token:
            raise ValidationError("FCM token is required")

        user = await self._resolve_caller(caller_id)

        # Only feeds the audit log; the upsert itself does not depend on it
        existing = await self.store.find_by_token(token)
        registration = await self.store.upsert_by_token(token, user.id, device_info)
        await self.store.commit()

        self._log_registration(registration, user.id, existing.user_id if existing else None)
        return registration


class SubscriptionRegistrar(OwnedRegistrar):
    """Ownership rules for browser web push subscriptions."""

    label = "Subscription"
    event_prefix = "push_subscription"

    store: SubscriptionStore

    async def subscribe(
        self,
        caller_id: str,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: str | None = None,
    ) -> PushSubscription:
        """Store the browser subscription for the caller, replacing its keys."""
        user = await self._resolve_caller(caller_id)

        existing = await self.store.find_by_endpoint(endpoint)
        subscription = await self.store.upsert_by_endpoint(
            endpoint, user.id, p256dh_key, auth_key, user_agent
        )
        await self.store.commit()

        self._log_registration(subscription, user.id, existing.user_id if existing else None)
        return subscription
