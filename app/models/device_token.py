"""
Device token model for Firebase Cloud Messaging endpoints.
"""

import uuid

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.base import TimestampMixin


class DeviceToken(Base, TimestampMixin):
    """One installed client able to receive push notifications.

    ``token`` is unique across the whole table, so a device belongs to at
    most one account at a time.
    """

    __tablename__ = "fcm_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Provider-issued registration token
    token: Mapped[str] = mapped_column(Text, unique=True, nullable=False)

    # Platform / browser / app version, free text
    device_info: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    owner = relationship("User", back_populates="fcm_tokens", lazy="noload")

    @property
    def delivery_address(self) -> str:
        return self.token

    def __repr__(self) -> str:
        return f"<DeviceToken user={self.user_id}>"
