"""
Chat Service

Conversation and message CRUD scoped to the owning user, plus the reply
flow: persist the user's turn, send recent history to the LLM, persist the
assistant's turn and bump the conversation's updated_at.
"""
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, Tuple, TypeVar

from tortoise.exceptions import BaseORMException
from tortoise.transactions import in_transaction

from app.core.errors import InternalError, NotFoundError, UpstreamError
from app.models import Conversation, Message, Role, utc_now
from .llm_base import ChatTurn, LLMProvider, StreamChunk, StreamFailed

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
CONVERSATION_PAGE_SIZE = 20
MESSAGE_PAGE_SIZE = 50

T = TypeVar("T")


def clamp_page(page: Optional[int], page_size: Optional[int], default_size: int) -> Tuple[int, int]:
    """
    Normalize pagination input: page >= 1, page_size within [1, MAX_PAGE_SIZE].
    A missing page_size falls back to default_size.
    """
    page = max(page or 1, 1)
    if page_size is None:
        page_size = default_size
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    return page, page_size


@dataclass
class Page(Generic[T]):
    """One page of results plus the total row count."""
    items: List[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


class ChatService:
    def __init__(self, provider: LLMProvider, history_limit: int = 20):
        self.provider = provider
        self.history_limit = history_limit

    # ---------------- conversations ----------------
    async def _owned_conversation(self, user_id: int, conversation_id: int) -> Conversation:
        conversation = await Conversation.alive(id=conversation_id, user_id=user_id).first()
        if not conversation:
            raise NotFoundError("conversation not found")
        return conversation

    async def list_conversations(
        self, user_id: int, page: Optional[int] = None, page_size: Optional[int] = None
    ) -> Page[Conversation]:
        """Most recently updated first."""
        page, page_size = clamp_page(page, page_size, CONVERSATION_PAGE_SIZE)
        qs = Conversation.alive(user_id=user_id)
        total = await qs.count()
        rows = await qs.order_by("-updated_at", "-id").offset((page - 1) * page_size).limit(page_size)
        return Page(items=list(rows), total=total, page=page, page_size=page_size)

    async def create_conversation(self, user_id: int, title: str) -> Conversation:
        return await Conversation.create(user_id=user_id, title=title)

    async def get_conversation(self, user_id: int, conversation_id: int) -> Conversation:
        return await self._owned_conversation(user_id, conversation_id)

    async def update_conversation(self, user_id: int, conversation_id: int, title: str) -> Conversation:
        conversation = await self._owned_conversation(user_id, conversation_id)
        conversation.title = title
        await conversation.save(update_fields=["title", "updated_at"])
        return conversation

    async def delete_conversation(self, user_id: int, conversation_id: int) -> None:
        """
        Soft-delete the conversation and all of its messages in one transaction.
        If either step fails nothing is deleted.
        """
        conversation = await self._owned_conversation(user_id, conversation_id)
        now = utc_now()
        try:
            async with in_transaction() as conn:
                await Message.alive(conversation_id=conversation.id).using_db(conn).update(deleted_at=now)
                conversation.deleted_at = now
                await conversation.save(using_db=conn, update_fields=["deleted_at"])
        except BaseORMException as e:
            logger.error("[chat] delete conversation %s failed: %r", conversation.id, e)
            raise InternalError("failed to delete conversation") from e
        logger.info("[chat] deleted conversation id=%s", conversation.id)

    # ---------------- messages ----------------
    async def list_messages(
        self,
        user_id: int,
        conversation_id: int,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Page[Message]:
        """Oldest first; ownership is checked before anything is read."""
        conversation = await self._owned_conversation(user_id, conversation_id)
        page, page_size = clamp_page(page, page_size, MESSAGE_PAGE_SIZE)
        qs = Message.alive(conversation_id=conversation.id)
        total = await qs.count()
        rows = await qs.order_by("created_at", "id").offset((page - 1) * page_size).limit(page_size)
        return Page(items=list(rows), total=total, page=page, page_size=page_size)

    async def _begin_turn(
        self, user_id: int, conversation_id: int, content: str
    ) -> Tuple[Conversation, Message, List[ChatTurn]]:
        """Verify ownership, persist the user's message, build model input from recent history."""
        conversation = await self._owned_conversation(user_id, conversation_id)
        user_message = await Message.create(
            conversation_id=conversation.id,
            role=Role.USER.value,
            content=content,
        )
        recent = await (
            Message.alive(conversation_id=conversation.id)
            .order_by("-created_at", "-id")
            .limit(self.history_limit)
        )
        turns = [ChatTurn(role=Role.parse(m.role), content=m.content) for m in reversed(recent)]
        return conversation, user_message, turns

    async def _finish_turn(self, conversation: Conversation, reply: str) -> Message:
        """Persist the assistant's reply; the conversation's updated_at becomes its created_at."""
        assistant_message = await Message.create(
            conversation_id=conversation.id,
            role=Role.ASSISTANT.value,
            content=reply,
        )
        # Queryset update bypasses auto_now, so the explicit value is kept
        await Conversation.filter(id=conversation.id).update(updated_at=assistant_message.created_at)
        conversation.updated_at = assistant_message.created_at
        return assistant_message

    async def send_message(self, user_id: int, conversation_id: int, content: str) -> Tuple[Message, Message]:
        """
        Single-shot reply.

        Returns:
            (user_message, assistant_message)

        Raises:
            NotFoundError: conversation missing or owned by someone else (nothing persisted)
            UpstreamError: provider failed or replied with nothing (user message is kept)
        """
        conversation, user_message, turns = await self._begin_turn(user_id, conversation_id, content)
        reply = await self.provider.generate(turns)
        if not reply:
            raise UpstreamError("no response generated")
        assistant_message = await self._finish_turn(conversation, reply)
        return user_message, assistant_message

    async def stream_message(
        self,
        user_id: int,
        conversation_id: int,
        content: str,
        on_chunk: Callable[[str], Awaitable[None]],
    ) -> Tuple[Message, Message]:
        """
        Streamed reply: on_chunk is awaited for every fragment as it arrives.

        The assistant message is written only after the provider signals
        completion. Any failure before that (provider error, on_chunk raising,
        cancellation) leaves the user message in place and no assistant message.
        """
        conversation, user_message, turns = await self._begin_turn(user_id, conversation_id, content)
        parts: List[str] = []
        logger.info("[chat] stream start conversation=%s turns=%d", conversation.id, len(turns))
        async with self.provider.stream(turns) as outcomes:
            async for outcome in outcomes:
                if isinstance(outcome, StreamChunk):
                    await on_chunk(outcome.text)
                    parts.append(outcome.text)
                elif isinstance(outcome, StreamFailed):
                    raise outcome.error
        reply = "".join(parts)
        if not reply:
            raise UpstreamError("no response generated")
        assistant_message = await self._finish_turn(conversation, reply)
        logger.info("[chat] stream done conversation=%s chars=%d", conversation.id, len(reply))
        return user_message, assistant_message
