"""
Core dependencies for session resolution and route protection
"""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from textock.database.supabase_client import get_supabase, get_service_supabase
from textock.modules.auth.schemas import CurrentUser, SessionContext
from textock.modules.auth.service import AuthService
from textock.modules.templates.service import TemplateService
from supabase import Client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_template_service(supabase: Client = Depends(get_service_supabase)) -> TemplateService:
    return TemplateService(supabase)


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    return credentials.credentials


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(optional_security),
    auth_service: AuthService = Depends(get_auth_service)
) -> SessionContext:
    """Build the session context for this request. Anonymous when no bearer token is sent."""
    if credentials is None:
        return SessionContext()
    user = auth_service.get_current_user(credentials.credentials)
    return SessionContext(user=user)


def require_user(session: SessionContext = Depends(get_session)) -> CurrentUser:
    """Dependency that rejects anonymous sessions"""
    if not session.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session.user
