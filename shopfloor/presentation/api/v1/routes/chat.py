from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.interfaces import BufferedNotifier, IRealtimeNotifier
from shopfloor.application.services.chat_service import ChatService
from shopfloor.infrastructure.persistence.database import get_db
from shopfloor.presentation.api.dependencies import (commit_then_push, get_current_user,
                                                      get_realtime_notifier)
from shopfloor.presentation.api.v1.schemas.chat import (ChatMessageResponse, ChatUser,
                                                         ConversationResponse, MessageCreate,
                                                         ReadReceipt)
from shopfloor.presentation.api.v1.schemas.token import TokenPayload

router = APIRouter()


@router.get("/users", response_model=list[ChatUser])
async def chat_users(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Active users the caller can talk to"""
    users = await ChatService(db).contacts(current_user.sub)
    return [ChatUser.model_validate(user) for user in users]


@router.get("", response_model=list[ChatMessageResponse])
async def all_messages(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    messages = await ChatService(db).all_messages(current_user.sub)
    return [ChatMessageResponse.model_validate(message) for message in messages]


@router.get("/conversations", response_model=list[ConversationResponse])
async def conversations(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """One entry per partner: most recent first, unread first on ties"""
    service = ChatService(db)
    summaries = await service.conversations(current_user.sub)
    partners = await service.users.get_by_ids([item.partner_id for item in summaries])
    return [
        ConversationResponse(
            partner_id=item.partner_id,
            partner=ChatUser.model_validate(partners[item.partner_id])
            if item.partner_id in partners
            else None,
            last_message=ChatMessageResponse.model_validate(item.last_message),
            unread_count=item.unread_count,
        )
        for item in summaries
    ]


@router.delete("/messages/{message_id}", response_model=ChatMessageResponse)
async def delete_message(
    message_id: str,
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[IRealtimeNotifier, Depends(get_realtime_notifier)],
):
    """Soft delete a message the caller sent; the receiver gets message:deleted"""
    buffered = BufferedNotifier(notifier)
    message = await ChatService(db, buffered).delete(current_user.sub, message_id)
    await commit_then_push(db, buffered)
    return ChatMessageResponse.model_validate(message)


@router.get("/{user_id}", response_model=list[ChatMessageResponse])
async def conversation_history(
    user_id: str,
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Messages exchanged with user_id, oldest first, deleted ones included as markers"""
    messages = await ChatService(db).history(current_user.sub, user_id)
    return [ChatMessageResponse.model_validate(message) for message in messages]


@router.post("/{user_id}", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    user_id: str,
    data: MessageCreate,
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[IRealtimeNotifier, Depends(get_realtime_notifier)],
):
    buffered = BufferedNotifier(notifier)
    message = await ChatService(db, buffered).send(
        current_user.sub, user_id, data.content, data.attachment_url
    )
    await commit_then_push(db, buffered)
    return ChatMessageResponse.model_validate(message)


@router.patch("/{user_id}/read", response_model=ReadReceipt)
async def mark_conversation_read(
    user_id: str,
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[IRealtimeNotifier, Depends(get_realtime_notifier)],
):
    """Mark everything user_id sent to the caller as read"""
    buffered = BufferedNotifier(notifier)
    count = await ChatService(db, buffered).mark_read(current_user.sub, user_id)
    await commit_then_push(db, buffered)
    return ReadReceipt(count=count)
