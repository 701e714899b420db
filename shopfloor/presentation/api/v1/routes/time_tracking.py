from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.interfaces import BufferedNotifier, IRealtimeNotifier
from shopfloor.application.services.time_tracking_service import TimeTrackingService
from shopfloor.infrastructure.cache.redis_cache import CacheService
from shopfloor.infrastructure.persistence.database import get_db, get_db_transactional
from shopfloor.presentation.api.dependencies import (commit_then_push, get_cache_service,
                                                      get_current_user, get_realtime_notifier,
                                                      require_permission)
from shopfloor.presentation.api.v1.schemas.common import (PageParams, PaginationMeta,
                                                           page_params)
from shopfloor.presentation.api.v1.schemas.time_tracking import (BreakResponse,
                                                                  CurrentSessionResponse,
                                                                  EndSessionRequest, NotesUpdate,
                                                                  SessionListResponse,
                                                                  SessionStatsResponse,
                                                                  SettingsResponse,
                                                                  SettingsUpdate,
                                                                  WorkSessionResponse)
from shopfloor.presentation.api.v1.schemas.token import TokenPayload
from shopfloor.shared.utils import ensure_utc

router = APIRouter()


@router.post(
    "/sessions/start", response_model=WorkSessionResponse, status_code=status.HTTP_201_CREATED
)
async def start_session(
    current_user: Annotated[TokenPayload, Depends(require_permission("timeTracking", "create"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """Start a work session; a user can only have one active session"""
    session = await TimeTrackingService(db).start_session(current_user.sub)
    return WorkSessionResponse.model_validate(session)


@router.post("/sessions/end", response_model=WorkSessionResponse)
async def end_session(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[IRealtimeNotifier, Depends(get_realtime_notifier)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
    data: EndSessionRequest | None = None,
):
    """
    End the caller's active session.

    An open break is closed at the same instant. total_duration is wall time
    minus completed breaks, in seconds.
    """
    buffered = BufferedNotifier(notifier)
    view = await TimeTrackingService(db, buffered, cache).end_session(
        current_user.sub, data.notes if data else None
    )
    await commit_then_push(db, buffered)
    return WorkSessionResponse.from_view(view)


@router.post("/breaks/start", response_model=BreakResponse, status_code=status.HTTP_201_CREATED)
async def start_break(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    return BreakResponse.model_validate(await TimeTrackingService(db).start_break(current_user.sub))


@router.post("/breaks/end", response_model=BreakResponse)
async def end_break(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    return BreakResponse.model_validate(await TimeTrackingService(db).end_break(current_user.sub))


@router.get("/sessions/current", response_model=CurrentSessionResponse)
async def current_session(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    view = await TimeTrackingService(db).current_session(current_user.sub)
    return CurrentSessionResponse(session=WorkSessionResponse.from_view(view) if view else None)


@router.get("/sessions/active", response_model=list[WorkSessionResponse])
async def active_sessions(
    current_user: Annotated[
        TokenPayload, Depends(require_permission("timeTracking", "viewAll"))
    ],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    sessions = await TimeTrackingService(db).active_sessions()
    return [WorkSessionResponse.model_validate(session) for session in sessions]


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
    paging: Annotated[PageParams, Depends(page_params)],
    user_id: Annotated[str | None, Query(description="Defaults to the caller")] = None,
    start: Annotated[datetime | None, Query(alias="from")] = None,
    end: Annotated[datetime | None, Query(alias="to")] = None,
):
    """Sessions with totals; other users' sessions require timeTracking.viewAll"""
    views, stats, total = await TimeTrackingService(db, cache_service=cache).list_sessions(
        current_user.sub,
        user_id,
        ensure_utc(start) if start else None,
        ensure_utc(end) if end else None,
        paging.skip,
        paging.limit,
    )
    return SessionListResponse(
        data=[WorkSessionResponse.from_view(view) for view in views],
        stats=SessionStatsResponse(
            total_work_duration=stats.total_work_duration,
            total_break_duration=stats.total_break_duration,
            total_sessions=stats.total_sessions,
        ),
        pagination=PaginationMeta.build(total, paging.page, paging.limit),
    )


@router.patch("/sessions/{session_id}/notes", response_model=WorkSessionResponse)
async def update_notes(
    session_id: str,
    data: NotesUpdate,
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
):
    """Owners edit their own notes; others need timeTracking.update at level 2"""
    session = await TimeTrackingService(db, cache_service=cache).update_notes(
        current_user.sub, session_id, data.notes
    )
    return WorkSessionResponse.model_validate(session)


@router.get("/settings", response_model=SettingsResponse)
async def get_settings(
    current_user: Annotated[TokenPayload, Depends(require_permission("timeTracking", "read"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    return SettingsResponse.model_validate(await TimeTrackingService(db).get_settings())


@router.put("/settings", response_model=SettingsResponse)
async def update_settings(
    data: SettingsUpdate,
    current_user: Annotated[
        TokenPayload, Depends(require_permission("timeTracking", "manageSettings"))
    ],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    settings = await TimeTrackingService(db).update_settings(
        current_user.sub, **data.model_dump(exclude_unset=True)
    )
    return SettingsResponse.model_validate(settings)
