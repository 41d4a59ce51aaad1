from fastapi import APIRouter, Depends
from textock.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse, SessionContext
)
from textock.modules.auth.service import AuthService
from textock.core.dependencies import get_auth_service, get_current_token, get_session, require_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token"""
    return service.login(login_data)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and invalidate token"""
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=SessionContext, dependencies=[Depends(require_user)])
async def get_me(session: SessionContext = Depends(get_session)):
    """Current session context (for frontend UI)."""
    return session
