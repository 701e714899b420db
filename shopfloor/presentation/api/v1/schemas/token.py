from pydantic import BaseModel, Field


class TokenPayload(BaseModel):
    """Access token claims"""

    sub: str = Field(..., description="User ID (subject)")
    exp: int = Field(..., description="Token expiration timestamp")
    type: str = "access"

    model_config = {
        "json_schema_extra": {
            "example": {"sub": "ckx2q9h3k0000qz0l1a2b3c4d", "exp": 1234567890, "type": "access"}
        }
    }


class LoginRequest(BaseModel):
    login: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
