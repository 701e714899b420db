from pydantic import BaseModel, ConfigDict, Field

from shopfloor.presentation.api.v1.schemas.common import UTCDateTime


class RoleSummary(BaseModel):
    id: str
    name: str
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    permissions: dict[str, int] = Field(
        default_factory=dict,
        description='Grants as {"module.action": level}; levels 1-3, 0 drops the grant',
    )


class RoleUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    permissions: dict[str, int] | None = Field(
        None, description="When given, replaces every existing grant of the role"
    )


class RoleResponse(RoleSummary):
    permissions: dict[str, int]
    user_count: int
    created_at: UTCDateTime
    updated_at: UTCDateTime

    @classmethod
    def from_details(cls, details) -> "RoleResponse":
        role = details.role
        return cls(
            id=role.id,
            name=role.name,
            description=role.description,
            permissions=details.permissions,
            user_count=details.user_count,
            created_at=role.created_at,
            updated_at=role.updated_at,
        )


class PermissionResponse(BaseModel):
    id: str
    module: str
    action: str
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)
