# app/models/conversation.py
"""
Database model for conversations.
A conversation is a titled thread of messages owned by exactly one user.
"""
from tortoise import fields

from .base import SoftDeleteModel


class Conversation(SoftDeleteModel):
    """
    Conversation database model.

    Relationships:
    - Belongs to a User (many-to-one)
    - Has many Messages (one-to-many, via related_name in Message model)

    updated_at moves forward on title change and whenever a reply completes,
    so listing by updated_at DESC shows the most recently active threads first.
    """
    id = fields.IntField(pk=True)
    user = fields.ForeignKeyField(
        "models.User",
        related_name="conversations",
        on_delete=fields.CASCADE,
    )
    title = fields.CharField(max_length=100)

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "conversations"
