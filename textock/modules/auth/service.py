import hashlib
import logging
import time
from typing import Dict, Optional, Tuple

from fastapi import HTTPException
from supabase import Client

from textock.modules.auth.schemas import (
    CurrentUser, LoginRequest, RegisterRequest, RegisterResponse, TokenResponse
)

logger = logging.getLogger(__name__)

INVALID_TOKEN = "Invalid or expired token"
INVALID_CREDENTIALS = "Invalid email or password"


class _UserCache:
    """Short-lived token -> user map, so editor reconnects do not hit Supabase Auth every time."""

    def __init__(self, ttl_seconds: float = 60, max_size: int = 500):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._entries: Dict[str, Tuple[CurrentUser, float]] = {}

    @staticmethod
    def _key(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    def get(self, token: str) -> Optional[CurrentUser]:
        key = self._key(token)
        entry = self._entries.get(key)
        if entry is None:
            return None
        user, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return user

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def put(self, token: str, user: CurrentUser) -> None:
        if len(self._entries) >= self.max_size:
            self._prune(time.monotonic())
        if len(self._entries) >= self.max_size:
            return
        self._entries[self._key(token)] = (user, time.monotonic() + self.ttl_seconds)

    def drop(self, token: str) -> None:
        self._entries.pop(self._key(token), None)

    def clear(self) -> None:
        self._entries.clear()


_user_cache = _UserCache()


def clear_user_cache() -> None:
    _user_cache.clear()


def _mentions(error: Exception, *needles: str) -> bool:
    text = str(error).lower()
    return any(needle in text for needle in needles)


class AuthService:
    """Account operations on top of Supabase Auth."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        try:
            result = self.supabase.auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
            })
        except Exception as e:
            if _mentions(e, "already registered", "already exists"):
                raise HTTPException(status_code=400, detail="User already exists")
            logger.error(f"Registration failed for {register_data.email}: {e}")
            raise HTTPException(status_code=500, detail="Registration failed")

        if not result.user:
            raise HTTPException(status_code=400, detail="Failed to register user")
        logger.info(f"Registered account {result.user.id}")
        return RegisterResponse(
            user_id=result.user.id,
            email=result.user.email or register_data.email,
            message="User registered successfully",
        )

    def login(self, login_data: LoginRequest) -> TokenResponse:
        try:
            result = self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password,
            })
        except Exception as e:
            if _mentions(e, "invalid", "credentials"):
                raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
            logger.error(f"Login failed for {login_data.email}: {e}")
            raise HTTPException(status_code=500, detail="Login failed")

        if not result.user or not result.session:
            raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
        return TokenResponse(
            access_token=result.session.access_token,
            token_type="bearer",
            user_id=result.user.id,
            email=result.user.email or login_data.email,
        )

    def get_current_user(self, token: str) -> CurrentUser:
        """Resolve the account behind a Supabase access token."""
        cached = _user_cache.get(token)
        if cached is not None:
            return cached

        try:
            result = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            if _mentions(e, "jwt", "expired", "invalid"):
                raise HTTPException(status_code=401, detail=INVALID_TOKEN)
            logger.error(f"Token lookup failed: {e}")
            raise HTTPException(status_code=401, detail="Authentication failed")

        if not result or not result.user:
            raise HTTPException(status_code=401, detail=INVALID_TOKEN)
        user = CurrentUser(id=result.user.id, email=result.user.email)
        _user_cache.put(token, user)
        return user

    def logout(self, token: str) -> bool:
        # Access tokens are stateless JWTs; forgetting the cached user is the server-side part
        _user_cache.drop(token)
        try:
            self.supabase.auth.sign_out()
        except Exception as e:
            logger.warning(f"Sign out failed: {e}")
            return False
        return True
