"""
LLM Service Abstract Interface

Provides a unified interface for chat-completion providers: a single-shot
generate() call and a streamed reply delivered through a ReplyStream.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import suppress
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Union

from app.core.errors import UpstreamError
from app.models.message import Role

logger = logging.getLogger(__name__)


@dataclass
class ChatTurn:
    """One role-tagged message sent to the model"""
    role: Role
    content: str


@dataclass
class StreamChunk:
    """A text fragment of the reply"""
    text: str


@dataclass
class StreamDone:
    """The provider signalled completion"""


@dataclass
class StreamFailed:
    """The provider call failed; no more outcomes follow"""
    error: UpstreamError


StreamOutcome = Union[StreamChunk, StreamDone, StreamFailed]


class ReplyStream:
    """
    Single conduit between a provider's text source and the consumer.

    Entering the context starts one background task that drains `source`
    into a bounded queue as StreamChunk outcomes, then enqueues exactly one
    terminal outcome (StreamDone or StreamFailed). Iterating yields outcomes
    in arrival order and stops after the terminal one.

    Leaving the context (normal exit, exception, cancellation, or the
    consumer breaking out early) cancels the producer, which closes the
    provider connection.

    Usage:
        async with provider.stream(turns) as outcomes:
            async for outcome in outcomes:
                ...
    """

    def __init__(self, source: AsyncIterator[str], maxsize: int = 10):
        self._source = source
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None
        self._finished = False

    async def __aenter__(self) -> "ReplyStream":
        self._task = asyncio.create_task(self._pump())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _pump(self) -> None:
        try:
            async for text in self._source:
                if text:
                    await self._queue.put(StreamChunk(text))
        except asyncio.CancelledError:
            raise
        except UpstreamError as e:
            logger.warning("[llm] stream failed: %s", e)
            await self._queue.put(StreamFailed(e))
            return
        except Exception as e:
            logger.warning("[llm] stream failed: %r", e)
            await self._queue.put(StreamFailed(UpstreamError(f"stream error: {e}")))
            return
        finally:
            # Source may be parked at a yield while we block on put(); close it explicitly
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                await aclose()
        await self._queue.put(StreamDone())

    def __aiter__(self) -> "ReplyStream":
        return self

    async def __anext__(self) -> StreamOutcome:
        if self._finished:
            raise StopAsyncIteration
        if self._task is None:
            raise RuntimeError("ReplyStream must be entered with 'async with' before iterating")
        outcome = await self._queue.get()
        if not isinstance(outcome, StreamChunk):
            self._finished = True
        return outcome

    async def aclose(self) -> None:
        """Stop the producer (if still running) and wait for it to unwind."""
        self._finished = True
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        with suppress(asyncio.CancelledError):
            await task


class LLMProvider(ABC):
    """LLM Provider Abstract Base Class"""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., "OpenAI Chat Completions")"""
        pass

    @abstractmethod
    async def generate(self, turns: List[ChatTurn]) -> str:
        """
        Produce the full assistant reply in one request.

        Raises:
        - UpstreamError: transport failure or empty completion
        """
        pass

    @abstractmethod
    def iter_reply(self, turns: List[ChatTurn]) -> AsyncIterator[str]:
        """Async iterator of reply text fragments, as the provider emits them"""
        pass

    def stream(self, turns: List[ChatTurn]) -> ReplyStream:
        """Streamed reply; see ReplyStream for the lifecycle"""
        return ReplyStream(self.iter_reply(turns))
