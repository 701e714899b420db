from pydantic import BaseModel, ConfigDict, EmailStr, Field

from shopfloor.presentation.api.v1.schemas.common import UTCDateTime
from shopfloor.presentation.api.v1.schemas.role import RoleSummary


class UserCreate(BaseModel):
    login: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, description="User password (min 8 characters)")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str | None = Field(None, max_length=32)
    role_ids: list[str] = Field(default_factory=list)


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    phone_number: str | None = Field(None, max_length=32)
    is_active: bool | None = None


class UserRolesUpdate(BaseModel):
    role_ids: list[str]


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class UserResponse(BaseModel):
    """User without credentials"""

    id: str
    login: str
    email: str
    first_name: str
    last_name: str
    phone_number: str | None = None
    is_active: bool
    last_login: UTCDateTime | None = None
    created_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)


class UserWithRoles(UserResponse):
    roles: list[RoleSummary] = []


class MeResponse(BaseModel):
    """Session profile: the user, their roles and the aggregated permission map"""

    user: UserResponse
    roles: list[RoleSummary]
    permissions: dict[str, int]


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse

