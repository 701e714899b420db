from pydantic import BaseModel, ConfigDict, Field, model_validator

from shopfloor.presentation.api.v1.schemas.common import UTCDateTime


class ChatUser(BaseModel):
    id: str
    login: str
    first_name: str
    last_name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class MessageCreate(BaseModel):
    content: str = Field("", max_length=5000)
    attachment_url: str | None = None

    @model_validator(mode="after")
    def require_body(self) -> "MessageCreate":
        if not self.content.strip() and not self.attachment_url:
            raise ValueError("Message content cannot be empty")
        return self


class ChatMessageResponse(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    attachment_url: str | None = None
    is_read: bool
    is_deleted: bool
    created_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)


class ConversationResponse(BaseModel):
    partner_id: str
    partner: ChatUser | None = None
    last_message: ChatMessageResponse
    unread_count: int


class ReadReceipt(BaseModel):
    count: int
