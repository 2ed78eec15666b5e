# app/api/v1/deps.py
from fastapi import Depends, Header, Request

from app.config import Settings
from app.core.errors import UnauthorizedError
from app.core.security import user_id_from_token
from app.models.user import User
from app.services.chat_service import ChatService
from app.services.user_service import UserService


def get_settings(request: Request) -> Settings:
    """Settings built once at startup (see app.main.create_app)."""
    return request.app.state.settings


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def strip_bearer(token: str) -> str:
    """Remove an optional "Bearer " prefix."""
    token = token.strip()
    if token.lower().startswith("bearer "):
        token = token.split(" ", 1)[1].strip()
    return token


async def authenticate(token: str, settings: Settings) -> int:
    """
    Verify the token and make sure it still belongs to an active user.

    Raises:
        UnauthorizedError (401): token invalid/expired, or user missing, deleted or deactivated
    """
    user_id = user_id_from_token(token, settings.jwt_secret)
    if not await User.alive(id=user_id, is_active=True).exists():
        raise UnauthorizedError("user not found")
    return user_id


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> int:
    """
    FastAPI dependency returning the ID of the authenticated user.

    The JWT is taken from the Authorization header (Bearer scheme) and
    verified with the configured secret.

    Raises:
        UnauthorizedError (401): header missing, wrong scheme, token invalid/expired, or user gone

    Usage:
        @router.get("/protected")
        async def protected_route(user_id: int = Depends(get_current_user_id)):
            ...
    """
    if not authorization:
        raise UnauthorizedError("authorization header required")
    if not authorization.lower().startswith("bearer "):
        raise UnauthorizedError("invalid token format")
    return await authenticate(strip_bearer(authorization), settings)
