from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class RegisterResponse(BaseModel):
    user_id: str
    email: str
    message: str


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


class SessionContext(BaseModel):
    """Current user plus loading flag, passed explicitly to whatever needs it."""
    user: Optional[CurrentUser] = None
    loading: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None
