# app/api/v1/routers/users.py
from fastapi import APIRouter, Depends, status

from app.api.v1.deps import get_current_user_id, get_user_service
from app.models.user import User
from app.schemas.auth import ChangePasswordIn, LoginIn, RegisterIn, UpdateProfileIn
from app.services.user_service import UserService

router = APIRouter(prefix="/user", tags=["user"])


def _user_to_dict(u: User) -> dict:
    """
    Convert User model instance to dictionary format for API responses.
    The password hash is never included.
    """
    return {
        "id": u.id,
        "email": u.email,
        "nickname": u.nickname,
        "avatar": u.avatar,
        "is_active": u.is_active,
        "created_at": u.created_at.isoformat() if u.created_at else None,
        "updated_at": u.updated_at.isoformat() if u.updated_at else None,
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterIn, users: UserService = Depends(get_user_service)):
    """
    Register a new user account.

    The password is hashed before storage and the new account is logged in
    straight away.

    Returns:
        dict: {"message", "data": {"token", "user"}}

    Errors:
        - 400: invalid email / password shorter than 6 / nickname length
        - 409: email already registered
    """
    token, user = await users.register(body.email, body.password, body.nickname)
    return {
        "message": "User registered successfully",
        "data": {"token": token, "user": _user_to_dict(user)},
    }


@router.post("/login")
async def login(body: LoginIn, users: UserService = Depends(get_user_service)):
    """
    Authenticate with email and password and return an access token.

    Errors:
        - 401: unknown email or wrong password (same message for both)
    """
    token, user = await users.login(body.email, body.password)
    return {
        "message": "Login successful",
        "data": {"token": token, "user": _user_to_dict(user)},
    }


@router.get("/profile")
async def get_profile(
    user_id: int = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
):
    user = await users.get_profile(user_id)
    return {"message": "Profile retrieved successfully", "data": _user_to_dict(user)}


@router.put("/profile")
async def update_profile(
    body: UpdateProfileIn,
    user_id: int = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
):
    """
    Update nickname and/or avatar. Fields left out of the body are not touched.
    """
    user = await users.update_profile(user_id, nickname=body.nickname, avatar=body.avatar)
    return {"message": "Profile updated successfully", "data": _user_to_dict(user)}


@router.put("/password")
async def change_password(
    body: ChangePasswordIn,
    user_id: int = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
):
    """
    Change password for the currently authenticated user.

    Errors:
        - 401: old_password does not match
    """
    await users.change_password(user_id, body.old_password, body.new_password)
    return {"message": "Password changed successfully"}
