# app/api/v1/routers/conversations.py
import asyncio
import json
import logging
from contextlib import suppress
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from app.api.v1.deps import authenticate, get_chat_service, get_current_user_id, get_settings, strip_bearer
from app.config import Settings
from app.core.errors import AppError, UnauthorizedError, ValidationError
from app.models import Conversation, Message
from app.schemas.conversation import ConversationTitleIn, SendMessageIn, validate_content
from app.services.chat_service import ChatService, Page

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


# ===== Serializers =====
def _conversation_to_dict(c: Conversation) -> dict:
    return {
        "id": c.id,
        "user_id": c.user_id,
        "title": c.title,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
    }


def _message_to_dict(m: Message) -> dict:
    return {
        "id": m.id,
        "conversation_id": m.conversation_id,
        "role": m.role,
        "content": m.content,
        "created_at": m.created_at.isoformat() if m.created_at else None,
        "updated_at": m.updated_at.isoformat() if m.updated_at else None,
    }


def _paginated(page: Page, serialize) -> dict:
    return {
        "data": [serialize(item) for item in page.items],
        "total": page.total,
        "page": page.page,
        "page_size": page.page_size,
        "total_pages": page.total_pages,
    }


def _title(body: ConversationTitleIn) -> str:
    title = body.title.strip()
    if not title:
        raise ValidationError("title is required")
    return title


# ===== Routes =====
@router.get("")
async def list_conversations(
    page: int | None = Query(None),
    page_size: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Paginated list of the caller's conversations, most recently updated first.

    page is floored at 1; page_size defaults to 20 and is clamped to [1, 100].
    """
    result = await chat.list_conversations(user_id, page, page_size)
    return _paginated(result, _conversation_to_dict)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_conversation(
    body: ConversationTitleIn,
    user_id: int = Depends(get_current_user_id),
    chat: ChatService = Depends(get_chat_service),
):
    conversation = await chat.create_conversation(user_id, _title(body))
    return {"message": "Conversation created successfully", "data": _conversation_to_dict(conversation)}


@router.get("/{cid}")
async def get_conversation(
    cid: int,
    user_id: int = Depends(get_current_user_id),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Errors:
        - 404: conversation not found or doesn't belong to user
    """
    conversation = await chat.get_conversation(user_id, cid)
    return {"message": "Conversation retrieved successfully", "data": _conversation_to_dict(conversation)}


@router.put("/{cid}")
async def update_conversation(
    cid: int,
    body: ConversationTitleIn,
    user_id: int = Depends(get_current_user_id),
    chat: ChatService = Depends(get_chat_service),
):
    conversation = await chat.update_conversation(user_id, cid, _title(body))
    return {"message": "Conversation updated successfully", "data": _conversation_to_dict(conversation)}


@router.delete("/{cid}")
async def delete_conversation(
    cid: int,
    user_id: int = Depends(get_current_user_id),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Delete a conversation together with all of its messages (single transaction).
    """
    await chat.delete_conversation(user_id, cid)
    return {"message": "Conversation deleted successfully"}


@router.get("/{cid}/messages")
async def list_messages(
    cid: int,
    page: int | None = Query(None),
    page_size: int | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Paginated messages of one conversation, oldest first (page_size default 50).
    """
    result = await chat.list_messages(user_id, cid, page, page_size)
    return _paginated(result, _message_to_dict)


@router.post("/{cid}/messages")
async def send_message(
    cid: int,
    body: SendMessageIn,
    user_id: int = Depends(get_current_user_id),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Store the user's message and reply with the model's answer in one response.

    Errors:
        - 404: conversation not found or doesn't belong to user
        - 502: AI provider failed (the user message stays stored)
    """
    user_message, assistant_message = await chat.send_message(user_id, cid, body.content)
    return {
        "message": "Message sent successfully",
        "data": {
            "user_message": _message_to_dict(user_message),
            "assistant_message": _message_to_dict(assistant_message),
        },
    }


# ===== Server-sent events =====
def _sse(payload: dict) -> str:
    """One SSE frame carrying a JSON payload."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def _chat_events(chat: ChatService, user_id: int, cid: int, content: str) -> AsyncIterator[str]:
    """
    Run stream_message in a task and relay its progress as SSE frames:
    start, chunk..., then end or error.

    If the client goes away the response generator is cancelled, which
    cancels the task and with it the provider stream.
    """
    events: asyncio.Queue = asyncio.Queue()

    async def on_chunk(text: str) -> None:
        await events.put(_sse({"type": "chunk", "content": text}))

    async def run() -> None:
        try:
            user_message, _ = await chat.stream_message(user_id, cid, content, on_chunk)
            await events.put(_sse({"type": "end", "user_message_id": user_message.id}))
        except AppError as e:
            logger.warning("[sse] conversation=%s aborted: %s", cid, e.message)
            await events.put(_sse({"type": "error", "message": e.message}))
        except Exception:
            logger.exception("[sse] conversation=%s failed", cid)
            await events.put(_sse({"type": "error", "message": "internal error"}))
        finally:
            events.put_nowait(None)

    yield _sse({"type": "start"})
    task = asyncio.create_task(run())
    try:
        while True:
            event = await events.get()
            if event is None:
                break
            yield event
    finally:
        if not task.done():
            task.cancel()
        with suppress(asyncio.CancelledError):
            await task


@router.get("/{cid}/stream")
async def stream_chat(
    cid: int,
    token: str = Query(""),
    content: str = Query(""),
    settings: Settings = Depends(get_settings),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Stream the model's reply as server-sent events.

    EventSource cannot send custom headers, so the JWT comes in the `token`
    query parameter (a "Bearer " prefix is tolerated).

    Token, content and conversation ownership are checked before the stream
    opens and fail with a normal JSON error; later failures arrive as an
    {"type": "error"} event.
    """
    if not token:
        raise UnauthorizedError("token is required")
    user_id = await authenticate(strip_bearer(token), settings)

    try:
        validate_content(content)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    await chat.get_conversation(user_id, cid)

    return StreamingResponse(
        _chat_events(chat, user_id, cid, content),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
