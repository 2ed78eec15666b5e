"""
OpenAI-compatible Chat Completions Provider

Calls {AI_BASE_URL}/chat/completions with httpx:
1. generate(): one request, full reply from choices[0].message.content
2. iter_reply(): stream=true, parses SSE "data:" lines until [DONE]
"""
import json
import logging
from typing import AsyncIterator, Dict, List

import httpx

from app.config import Settings
from app.core.errors import UpstreamError
from app.models.message import Role
from .llm_base import ChatTurn, LLMProvider

logger = logging.getLogger(__name__)


class OpenAIChatProvider(LLMProvider):
    """OpenAI Chat Completions API Provider"""

    def __init__(self, settings: Settings):
        self.api_key = settings.ai_api_key
        self.model = settings.ai_model
        self.timeout = settings.ai_timeout
        self.system_prompt = settings.ai_system_prompt
        self.api_url = settings.ai_base_url.rstrip("/") + "/chat/completions"

    @property
    def name(self) -> str:
        return "OpenAI Chat Completions"

    def is_available(self) -> bool:
        """Check if API key is configured"""
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, turns: List[ChatTurn], stream: bool) -> Dict:
        messages = []
        if self.system_prompt:
            messages.append({"role": Role.SYSTEM.value, "content": self.system_prompt})
        messages.extend({"role": t.role.value, "content": t.content} for t in turns)
        return {"model": self.model, "messages": messages, "stream": stream}

    async def generate(self, turns: List[ChatTurn]) -> str:
        if not self.is_available():
            raise UpstreamError("AI provider is not configured")

        logger.info("[llm] generate: model=%s turns=%d", self.model, len(turns))
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.api_url, headers=self._headers(), json=self._payload(turns, stream=False)
                )
                resp.raise_for_status()
                result = resp.json()
        except httpx.HTTPError as e:
            logger.warning("[llm] generate failed: %r", e)
            raise UpstreamError(f"failed to generate response: {e}") from e
        except ValueError as e:
            raise UpstreamError(f"malformed provider response: {e}") from e

        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise UpstreamError("no response generated")
        return content

    async def iter_reply(self, turns: List[ChatTurn]) -> AsyncIterator[str]:
        if not self.is_available():
            raise UpstreamError("AI provider is not configured")

        logger.info("[llm] stream: model=%s turns=%d", self.model, len(turns))
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    "POST", self.api_url, headers=self._headers(), json=self._payload(turns, stream=True)
                ) as resp:
                    resp.raise_for_status()
                    async for line in resp.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if data == "[DONE]":
                            break
                        text = _delta_text(json.loads(data))
                        if text:
                            logger.debug("[llm] chunk: %r", text)
                            yield text
        except httpx.HTTPError as e:
            raise UpstreamError(f"failed to stream response: {e}") from e
        except ValueError as e:
            raise UpstreamError(f"malformed stream chunk: {e}") from e
        logger.info("[llm] stream ended normally")


def _delta_text(chunk: Dict) -> str:
    """Text carried by one streamed completion chunk ("" when it has none)"""
    try:
        return chunk["choices"][0]["delta"].get("content") or ""
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
