"""Pydantic models for notification creation and read-out."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coursewatch.models.enums import NotificationStatus, NotificationType


class FacilitatorInfo(BaseModel):
    """Facilitator facts carried by manager alerts."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    missed_weeks: list[int] | None = Field(None, alias="missedWeeks")

    def as_metadata(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NotificationCreate(BaseModel):
    """Validated input for a new notification record."""

    model_config = ConfigDict(extra="forbid")

    type: NotificationType
    recipient_id: str = Field(..., min_length=1)
    allocation_id: str | None = None
    week_number: int | None = None
    title: str = Field(..., min_length=1, max_length=500)
    message: str = Field(..., min_length=1)
    scheduled_for: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("title", "message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class NotificationModel(BaseModel):
    """Read model of a notification record."""

    model_config = ConfigDict(from_attributes=True)

    notification_id: str
    type: NotificationType
    recipient_id: str
    allocation_id: str | None = None
    week_number: int | None = None
    title: str
    message: str
    status: NotificationStatus
    scheduled_for: datetime | None = None
    sent_at: datetime | None = None
    metadata: dict[str, Any] | None = Field(None, validation_alias="extra_data")
    created_at: datetime | None = None
