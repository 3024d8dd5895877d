"""Text-completion collaborators for the route assistant."""

from __future__ import annotations

import logging
import os
from typing import Protocol

import anthropic

from veloroute.services.errors import UnparseableResponse

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class TextCompleter(Protocol):
    async def complete(self, prompt: str) -> str: ...


class AnthropicCompleter:
    """Single-turn completion through the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = 800,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model or os.environ.get("ROUTE_ASSISTANT_MODEL", DEFAULT_MODEL)
        self.max_tokens = max_tokens
        self._client = client

    def _get_client(self) -> anthropic.AsyncAnthropic:
        """Lazy-load the Anthropic client."""
        if self._client is None:
            if not self.api_key:
                raise UnparseableResponse("ANTHROPIC_API_KEY not configured")
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(self, prompt: str) -> str:
        client = self._get_client()
        try:
            message = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            logger.exception("Route intent completion failed")
            raise UnparseableResponse(f"text completion failed: {exc}") from exc

        return "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )
