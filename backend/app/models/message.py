# app/models/message.py
from enum import Enum

from tortoise import fields

from .base import SoftDeleteModel


class Role(str, Enum):
    """Author of a message."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        """Map a stored role string to a Role; anything unrecognized is treated as USER."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.USER


class Message(SoftDeleteModel):
    """One turn in a conversation. Immutable once written."""
    id = fields.IntField(pk=True)
    conversation = fields.ForeignKeyField(
        "models.Conversation",
        related_name="messages",
        on_delete=fields.CASCADE,
    )
    role = fields.CharField(max_length=16)  # user / assistant / system
    content = fields.TextField()

    class Meta:
        table = "messages"
