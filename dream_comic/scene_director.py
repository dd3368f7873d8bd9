"""
Dream Comic — Claude scene director.

Text collaborator backed by the Anthropic Messages API. It receives the
visual-director instructions as the system prompt and returns the raw
reply text; parsing happens in script_parser.
"""

import logging
import os
from typing import Optional

from dream_comic.collaborators import TextGenerator
from dream_comic.config import DEFAULT_TEXT_MODEL
from dream_comic.errors import EmptyResponseError

logger = logging.getLogger(__name__)

MAX_TOKENS = 1500


class ClaudeSceneDirector(TextGenerator):
    """Asks Claude for a panel breakdown of a dream story."""

    def __init__(self, api_key: Optional[str] = None, model: str = DEFAULT_TEXT_MODEL):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        self.model = model
        self._client = None
        if not self.api_key:
            logger.warning("ANTHROPIC_API_KEY not set - scene director unavailable")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _get_client(self):
        """Lazy load Anthropic client."""
        if self._client is None:
            import anthropic
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        client = self._get_client()
        response = await client.messages.create(
            model=self.model,
            max_tokens=MAX_TOKENS,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()
        if not text:
            raise EmptyResponseError("Claude returned an empty reply")

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                f"Scene director reply: {len(text)} chars "
                f"({usage.input_tokens} in / {usage.output_tokens} out tokens)"
            )
        return text

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
