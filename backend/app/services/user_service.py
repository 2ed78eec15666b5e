"""
User account service: registration, login, profile and password changes.
"""
import logging
from typing import Optional, Tuple

from tortoise.exceptions import IntegrityError

from app.config import Settings
from app.core.errors import ConflictError, NotFoundError, UnauthorizedError
from app.core.security import create_access_token, hash_password, verify_password
from app.models.user import User

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "invalid email or password"


class UserService:
    def __init__(self, settings: Settings):
        self.settings = settings

    def issue_token(self, user: User) -> str:
        """Signed access token bound to the user's ID."""
        return create_access_token(user.id, self.settings.jwt_secret, self.settings.jwt_expire_minutes)

    async def register(self, email: str, password: str, nickname: str) -> Tuple[str, User]:
        """
        Create an account and log it in.

        Raises:
            ConflictError: email already registered
        """
        if await User.filter(email=email).exists():
            raise ConflictError("email already exists")
        try:
            user = await User.create(
                email=email,
                password_hash=hash_password(password),
                nickname=nickname,
                is_active=True,
            )
        except IntegrityError as e:
            # Lost a race against a concurrent registration for the same email
            raise ConflictError("email already exists") from e
        logger.info("[user] registered id=%s", user.id)
        return self.issue_token(user), user

    async def login(self, email: str, password: str) -> Tuple[str, User]:
        """
        Check credentials and issue a token.

        Unknown email and wrong password fail with the same message.
        """
        user = await User.alive(email=email, is_active=True).first()
        if not user or not verify_password(password, user.password_hash):
            raise UnauthorizedError(INVALID_CREDENTIALS)
        return self.issue_token(user), user

    async def get_profile(self, user_id: int) -> User:
        user = await User.alive(id=user_id, is_active=True).first()
        if not user:
            raise NotFoundError("user not found")
        return user

    async def update_profile(
        self, user_id: int, nickname: Optional[str] = None, avatar: Optional[str] = None
    ) -> User:
        """Partial update: only fields that are not None are written."""
        user = await self.get_profile(user_id)
        changed = []
        if nickname is not None:
            user.nickname = nickname
            changed.append("nickname")
        if avatar is not None:
            user.avatar = avatar
            changed.append("avatar")
        if changed:
            await user.save(update_fields=changed + ["updated_at"])
        return user

    async def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        """
        Raises:
            UnauthorizedError: old password does not match
        """
        user = await self.get_profile(user_id)
        if not verify_password(old_password, user.password_hash):
            raise UnauthorizedError("invalid old password")
        user.password_hash = hash_password(new_password)
        await user.save(update_fields=["password_hash", "updated_at"])
        logger.info("[user] password changed id=%s", user.id)
