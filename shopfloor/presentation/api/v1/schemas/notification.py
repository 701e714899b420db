from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shopfloor.presentation.api.v1.schemas.common import UTCDateTime
from shopfloor.shared.enums import NotificationType


class NotificationSend(BaseModel):
    user_id: str
    content: str = Field(..., min_length=1, max_length=2000)
    link: str | None = "/dashboard"
    type: NotificationType = NotificationType.SYSTEM


class NotificationSchedule(NotificationSend):
    scheduled_at: datetime = Field(..., description="Delivery time; naive values are read as UTC")


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    created_by_id: str | None = None
    content: str
    link: str | None = None
    type: str
    # "metadata" on the wire, "meta" on the model
    metadata: dict[str, Any] | None = Field(None, validation_alias="meta")
    is_read: bool
    archived: bool
    created_at: UTCDateTime
    scheduled_at: UTCDateTime | None = None
    sent_at: UTCDateTime | None = None

    model_config = ConfigDict(from_attributes=True)
