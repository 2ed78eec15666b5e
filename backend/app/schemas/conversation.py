# app/schemas/conversation.py
"""
Pydantic schemas for conversation and message endpoints.
"""
from pydantic import BaseModel, Field, field_validator

MAX_CONTENT_LENGTH = 4000


def validate_content(value: str) -> str:
    """
    Message content rule shared by POST /messages and the SSE stream route:
    not blank, at most MAX_CONTENT_LENGTH characters. Raises ValueError.
    """
    if not value or not value.strip():
        raise ValueError("content is required")
    if len(value) > MAX_CONTENT_LENGTH:
        raise ValueError(f"content must be at most {MAX_CONTENT_LENGTH} characters")
    return value


class ConversationTitleIn(BaseModel):
    """
    Request model for creating or renaming a conversation.
    """
    title: str = Field(min_length=1, max_length=100)


class SendMessageIn(BaseModel):
    """
    Request model for sending a user message.
    """
    content: str

    @field_validator("content")
    @classmethod
    def check_content(cls, value: str) -> str:
        return validate_content(value)
