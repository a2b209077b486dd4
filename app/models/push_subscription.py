"""
Push subscription model for browser web push (VAPID) endpoints.
"""

import uuid

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.base import TimestampMixin


class PushSubscription(Base, TimestampMixin):
    """Web push subscription for notifications.

    ``endpoint`` is unique: a browser subscription belongs to one account,
    and subscribing again from another account moves it.
    """

    __tablename__ = "push_subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Push subscription data
    endpoint: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    p256dh_key: Mapped[str] = mapped_column(Text, nullable=False)  # Public key
    auth_key: Mapped[str] = mapped_column(Text, nullable=False)  # Auth secret

    # User agent for device identification
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Relationships
    owner = relationship("User", back_populates="push_subscriptions", lazy="noload")

    @property
    def delivery_address(self) -> dict:
        """Subscription info in the shape pywebpush expects."""
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh_key, "auth": self.auth_key},
        }

    def __repr__(self) -> str:
        return f"<PushSubscription user={self.user_id}>"
