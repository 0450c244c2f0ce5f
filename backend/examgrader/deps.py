"""
FastAPI dependencies - current user and the application-owned collaborators
(stores, rate limiter, settings provider, model client factory).
"""

from datetime import datetime, timezone

from fastapi import Request, HTTPException

from .config import GradingConfig
from .database import db
from .models.user import User
from .services.drafts import DraftStore
from .services.rate_limiter import RateLimiter
from .services.settings_provider import ConfigProvider
from .services.storage import EvaluationStore


async def get_current_user(request: Request) -> User:
    """Get current user from the session token (cookie or Bearer header)"""
    session_token = request.cookies.get("session_token")

    if not session_token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session_token = auth_header.split(" ", 1)[1]

    if not session_token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    session = await db.user_sessions.find_one({"session_token": session_token}, {"_id": 0})
    if not session:
        raise HTTPException(status_code=401, detail="Invalid session")

    expires_at = session.get("expires_at")
    if isinstance(expires_at, str):
        expires_at = datetime.fromisoformat(expires_at)
    if expires_at is not None:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at < datetime.now(timezone.utc):
            raise HTTPException(status_code=401, detail="Session expired")

    user = await db.users.find_one({"user_id": session["user_id"]}, {"_id": 0})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    account_status = user.get("account_status", "active")
    if account_status in ("banned", "disabled"):
        raise HTTPException(status_code=403, detail=f"Account {account_status}. Contact support.")

    return User(**user)


def get_evaluation_store(request: Request) -> EvaluationStore:
    return request.app.state.evaluation_store


def get_draft_store(request: Request) -> DraftStore:
    return request.app.state.draft_store


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_config_provider(request: Request) -> ConfigProvider:
    return request.app.state.config_provider


def get_chat_factory(request: Request):
    return request.app.state.chat_factory


def get_grading_config(request: Request) -> GradingConfig:
    return request.app.state.grading_config
