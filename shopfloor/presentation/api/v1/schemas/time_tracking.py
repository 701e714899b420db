from pydantic import BaseModel, ConfigDict, Field

from shopfloor.presentation.api.v1.schemas.common import PaginationMeta, UTCDateTime


class BreakResponse(BaseModel):
    id: str
    session_id: str
    start_time: UTCDateTime
    end_time: UTCDateTime | None = None
    duration: int | None = None

    model_config = ConfigDict(from_attributes=True)


class WorkSessionResponse(BaseModel):
    id: str
    user_id: str
    start_time: UTCDateTime
    end_time: UTCDateTime | None = None
    total_duration: int | None = None
    notes: str | None = None
    breaks: list[BreakResponse] = []

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_view(cls, view) -> "WorkSessionResponse":
        response = cls.model_validate(view.session)
        response.breaks = [BreakResponse.model_validate(item) for item in view.breaks]
        return response


class EndSessionRequest(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class NotesUpdate(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class SessionStatsResponse(BaseModel):
    total_work_duration: int
    total_break_duration: int
    total_sessions: int


class SessionListResponse(BaseModel):
    data: list[WorkSessionResponse]
    stats: SessionStatsResponse
    pagination: PaginationMeta


class CurrentSessionResponse(BaseModel):
    session: WorkSessionResponse | None = None


class SettingsResponse(BaseModel):
    enable_break_button: bool
    min_session_duration: int
    max_session_duration: int
    max_break_duration: int

    model_config = ConfigDict(from_attributes=True)


class SettingsUpdate(BaseModel):
    """Durations are in minutes"""

    enable_break_button: bool | None = None
    min_session_duration: int | None = Field(None, ge=0)
    max_session_duration: int | None = Field(None, ge=1, le=24 * 60)
    max_break_duration: int | None = Field(None, ge=1)
