from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.interfaces import BufferedNotifier, IRealtimeNotifier
from shopfloor.application.services.notification_service import NotificationService
from shopfloor.infrastructure.persistence.database import get_db, get_db_transactional
from shopfloor.presentation.api.dependencies import (commit_then_push, get_current_user,
                                                      get_realtime_notifier, require_permission)
from shopfloor.presentation.api.v1.schemas.common import (CountResponse, Page, PageParams,
                                                           PaginationMeta, page_params)
from shopfloor.presentation.api.v1.schemas.notification import (NotificationResponse,
                                                                 NotificationSchedule,
                                                                 NotificationSend)
from shopfloor.presentation.api.v1.schemas.token import TokenPayload

router = APIRouter()

require_admin = require_permission("admin", "access")


def _page(items, total: int, paging: PageParams) -> Page[NotificationResponse]:
    return Page[NotificationResponse](
        data=[NotificationResponse.model_validate(item) for item in items],
        pagination=PaginationMeta.build(total, paging.page, paging.limit),
    )


@router.get("", response_model=Page[NotificationResponse])
async def list_notifications(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    paging: Annotated[PageParams, Depends(page_params)],
):
    """Caller's delivered, non-archived notifications, newest first"""
    items, total = await NotificationService(db).list_active(
        current_user.sub, paging.skip, paging.limit
    )
    return _page(items, total, paging)


@router.get("/history", response_model=Page[NotificationResponse])
async def notification_history(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    paging: Annotated[PageParams, Depends(page_params)],
):
    items, total = await NotificationService(db).history(
        current_user.sub, paging.skip, paging.limit
    )
    return _page(items, total, paging)


@router.patch("/read-all", response_model=CountResponse)
async def read_all(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    return CountResponse(updated=await NotificationService(db).read_all(current_user.sub))


@router.patch("/archive-all", response_model=CountResponse)
async def archive_all(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    return CountResponse(updated=await NotificationService(db).archive_all(current_user.sub))


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    notification = await NotificationService(db).mark_read(notification_id, current_user.sub)
    return NotificationResponse.model_validate(notification)


@router.patch("/{notification_id}/archive", response_model=NotificationResponse)
async def archive(
    notification_id: str,
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    notification = await NotificationService(db).archive(notification_id, current_user.sub)
    return NotificationResponse.model_validate(notification)


@router.post("/send", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def send_notification(
    data: NotificationSend,
    current_user: Annotated[TokenPayload, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[IRealtimeNotifier, Depends(get_realtime_notifier)],
):
    """Send a notification now; the recipient's sockets get notification:<userId>"""
    buffered = BufferedNotifier(notifier)
    notification = await NotificationService(db, buffered).send(
        data.user_id, data.content, data.link, data.type, created_by_id=current_user.sub
    )
    await commit_then_push(db, buffered)
    return NotificationResponse.model_validate(notification)


@router.post(
    "/schedule", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED
)
async def schedule_notification(
    data: NotificationSchedule,
    current_user: Annotated[TokenPayload, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    notification = await NotificationService(db).schedule(
        data.user_id,
        data.content,
        data.scheduled_at,
        link=data.link,
        type=data.type,
        created_by_id=current_user.sub,
    )
    return NotificationResponse.model_validate(notification)


@router.get("/scheduled", response_model=Page[NotificationResponse])
async def list_scheduled(
    current_user: Annotated[TokenPayload, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    paging: Annotated[PageParams, Depends(page_params)],
):
    items, total = await NotificationService(db).list_scheduled(paging.skip, paging.limit)
    return _page(items, total, paging)


@router.delete("/scheduled/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_scheduled(
    notification_id: str,
    current_user: Annotated[TokenPayload, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """Cancel a scheduled notification that has not been delivered yet"""
    await NotificationService(db).delete_scheduled(notification_id)
