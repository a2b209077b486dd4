"""
Persistence for push endpoints: FCM device tokens and web push subscriptions.

No authorization happens here; callers decide who may touch which row.
"""

import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from app.errors import InternalError
from app.models.device_token import DeviceToken
from app.models.push_subscription import PushSubscription


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class RegistrationStore:
    """Owned endpoint rows bound to one session.

    Subclasses set ``model``; it must have ``user_id``, ``owner``,
    ``created_at`` and ``updated_at``.
    """

    model = None

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise InternalError(f"Endpoint upsert is not supported on {dialect}") from None

    async def _upsert(self, key: str, values: dict, update: Sequence[str]):
        """Insert a row or update ``update`` columns on the row sharing ``key``.

        Runs as one INSERT ... ON CONFLICT statement so two concurrent
        registrations of the same endpoint converge on a single row.
        """
        now = self.clock()
        insert = self._insert()
        stmt = insert(self.model).values(id=str(uuid.uuid4()), created_at=now, updated_at=now, **values)
        set_ = {name: stmt.excluded[name] for name in update}
        set_["updated_at"] = stmt.excluded.updated_at
        stmt = stmt.on_conflict_do_update(
            index_elements=[getattr(self.model, key)],
            set_=set_,
        ).returning(self.model)

        result = await self.db.scalars(
            stmt,
            execution_options={"populate_existing": True},
        )
        return result.one()

    async def list_by_owner(self, owner_id: str) -> list:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.user_id == owner_id)
            .order_by(self.model.updated_at.desc())
        )
        return list(result.scalars().all())

    async def find_by_id(self, registration_id: str):
        result = await self.db.execute(
            select(self.model).where(self.model.id == registration_id)
        )
        return result.scalar_one_or_none()

    async def delete_by_id(self, registration_id: str) -> bool:
        """Delete one row; returns False if it was already gone."""
        result = await self.db.execute(
            delete(self.model)
            .where(self.model.id == registration_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_by_owner(self, owner_id: str) -> int:
        result = await self.db.execute(
            delete(self.model)
            .where(self.model.user_id == owner_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def list_by_owners(self, owner_ids: Sequence[str] | None = None) -> list:
        """Rows for the given owners, or every row when ``owner_ids`` is empty.

        The owner is loaded alongside each row for logging.
        """
        stmt = (
            select(self.model)
            .join(self.model.owner)
            .options(contains_eager(self.model.owner))
            .order_by(self.model.created_at)
        )
        if owner_ids:
            stmt = stmt.where(self.model.user_id.in_(list(owner_ids)))
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    async def count(self) -> int:
        return await self.db.scalar(select(func.count()).select_from(self.model)) or 0

    async def commit(self) -> None:
        await self.db.commit()


class TokenStore(RegistrationStore):
    """FCM device tokens, unique by ``token``."""

    model = DeviceToken

    async def upsert_by_token(
        self,
        token: str,
        owner_id: str,
        device_info: str | None = None,
    ) -> DeviceToken:
        """Insert the token or re-point the existing row at ``owner_id``."""
        return await self._upsert(
            "token",
            {"user_id": owner_id, "token": token, "device_info": device_info},
            update=("user_id", "device_info"),
        )

    async def find_by_token(self, token: str) -> DeviceToken | None:
        result = await self.db.execute(
            select(DeviceToken).where(DeviceToken.token == token)
        )
        return result.scalar_one_or_none()


class SubscriptionStore(RegistrationStore):
    """Web push subscriptions, unique by ``endpoint``."""

    model = PushSubscription

    async def upsert_by_endpoint(
        self,
        endpoint: str,
        owner_id: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: str | None = None,
    ) -> PushSubscription:
        """Insert the subscription or re-point it at ``owner_id`` with fresh keys."""
        return await self._upsert(
            "endpoint",
            {
                "user_id": owner_id,
                "endpoint": endpoint,
                "p256dh_key": p256dh_key,
                "auth_key": auth_key,
                "user_agent": user_agent,
            },
            update=("user_id", "p256dh_key", "auth_key", "user_agent"),
        )

    async def find_by_endpoint(self, endpoint: str) -> PushSubscription | None:
        result = await self.db.execute(
            select(PushSubscription).where(PushSubscription.endpoint == endpoint)
        )
        return result.scalar_one_or_none()
