"""
User model for identity and roles.

Accounts are owned by the auth service; this table carries only what
notification delivery needs to resolve owners and authorize callers.
"""

import uuid
from enum import Enum

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.base import TimestampMixin


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    REPARTIDOR = "REPARTIDOR"  # Field courier


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(String(20), default=UserRole.REPARTIDOR, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Relationships
    fcm_tokens = relationship(
        "DeviceToken",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload",
    )
    push_subscriptions = relationship(
        "PushSubscription",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User {self.email}>"
