"""
Services Module

Business logic behind the HTTP routes:
- Users: registration, login, profile and password changes
- Chat: conversations, messages and assistant replies
- LLM: chat-completion provider (single-shot and streamed)
"""

from .llm_base import (
    ChatTurn,
    LLMProvider,
    ReplyStream,
    StreamChunk,
    StreamDone,
    StreamFailed,
)
from .llm_factory import get_llm_provider
from .llm_openai import OpenAIChatProvider
from .chat_service import ChatService, Page, clamp_page
from .user_service import UserService

__all__ = [
    # LLM
    "ChatTurn",
    "LLMProvider",
    "ReplyStream",
    "StreamChunk",
    "StreamDone",
    "StreamFailed",
    "get_llm_provider",
    "OpenAIChatProvider",
    # Orchestration
    "ChatService",
    "Page",
    "clamp_page",
    "UserService",
]
