# Models package
from app.db import Base
from app.models.user import User, UserRole
from app.models.device_token import DeviceToken
from app.models.push_subscription import PushSubscription

__all__ = [
    "Base",
    "User",
    "UserRole",
    "DeviceToken",
    "PushSubscription",
]
