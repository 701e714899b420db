from typing import Any

from pydantic import BaseModel, ConfigDict

from shopfloor.presentation.api.v1.schemas.common import UTCDateTime


class AuditLogResponse(BaseModel):
    id: str
    user_id: str | None = None
    action: str
    module: str
    target_id: str | None = None
    meta: dict[str, Any] | None = None
    created_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)
