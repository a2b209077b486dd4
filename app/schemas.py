"""
Request and response bodies for the push APIs (camelCase on the wire).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from pydantic.alias_generators import to_camel

from app.services.providers import NotificationPayload
from app.services.report import DispatchReport


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SaveTokenRequest(CamelModel):
    token: str = Field(min_length=1)
    device_info: str | None = None


class TokenOut(CamelModel):
    id: str
    user_id: str
    token: str
    device_info: str | None = None
    created_at: datetime
    updated_at: datetime


class SubscriptionKeys(CamelModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class SubscribeRequest(CamelModel):
    endpoint: HttpUrl
    keys: SubscriptionKeys
    user_agent: str | None = Field(default=None, max_length=500)


class SubscriptionOut(CamelModel):
    id: str
    user_id: str
    endpoint: str
    user_agent: str | None = None
    subscribed_at: datetime = Field(validation_alias="created_at", serialization_alias="subscribedAt")


class SendNotificationRequest(CamelModel):
    title: str = Field(min_length=1, max_length=100)
    body: str = Field(min_length=1, max_length=500)
    user_ids: list[str] | None = None
    data: dict[str, str] | None = None
    image_url: HttpUrl | None = None

    def to_payload(self) -> NotificationPayload:
        return NotificationPayload(
            title=self.title,
            body=self.body,
            data=dict(self.data or {}),
            image_url=str(self.image_url) if self.image_url else None,
        )


class DispatchReportOut(BaseModel):
    success: int
    failure: int
    removed: int
    skipped: int
    message: str

    @classmethod
    def from_report(cls, report: DispatchReport) -> "DispatchReportOut":
        return cls(
            success=report.success_count,
            failure=report.failure_count,
            removed=report.removed_count,
            skipped=report.skipped_count,
            message=report.message,
        )
