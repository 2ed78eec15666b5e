# app/schemas/auth.py
"""
Pydantic schemas for user account endpoints.
Defines request models for registration, login, and profile/password updates.
"""
from typing import Optional

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterIn(BaseModel):
    """
    Request model for user registration.
    """
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6)  # Plain text, hashed server-side
    nickname: str = Field(min_length=2, max_length=50)


class LoginIn(BaseModel):
    """
    Request model for user login endpoint.
    """
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)


class UpdateProfileIn(BaseModel):
    """
    Request model for profile updates.
    All fields are optional - only provided fields will be updated.
    """
    nickname: Optional[str] = Field(default=None, min_length=2, max_length=50)
    avatar: Optional[str] = Field(default=None, max_length=512)  # Avatar URL


class ChangePasswordIn(BaseModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)
