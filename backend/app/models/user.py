# app/models/user.py
"""
Database model for users.
Represents a user account: login credentials and display profile.
"""
from tortoise import fields

from .base import SoftDeleteModel


class User(SoftDeleteModel):
    """
    User database model.

    Relationships:
    - Has many Conversations (one-to-many, via related_name="conversations")

    Security:
    - Password is stored as an argon2 hash, never as plain text
    - Email must be unique across all users
    """
    id = fields.IntField(pk=True)
    email = fields.CharField(max_length=255, unique=True, index=True)  # Login identity
    password_hash = fields.CharField(max_length=255)
    nickname = fields.CharField(max_length=50)
    avatar = fields.CharField(max_length=512, null=True)  # Avatar URL
    is_active = fields.BooleanField(default=True)  # Inactive users cannot log in

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "users"
