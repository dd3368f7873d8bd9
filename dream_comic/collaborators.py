"""
Dream Comic — Collaborator interfaces.

The orchestrator talks to three external services through these
shapes. Anything with the same methods works (tests pass plain fakes);
the base classes exist so real clients share their defaults.
"""

from typing import Optional

from dream_comic.models import DreamerProfile


class TextGenerator:
    """Turns instructions plus a story into raw scene text."""

    def is_available(self) -> bool:
        return True

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        raise NotImplementedError

    async def close(self):
        pass


class ImageGenerator:
    """Turns one scene prompt into PNG bytes."""

    supports_negative_prompt = False

    def is_available(self) -> bool:
        return True

    async def generate(self, prompt: str, negative_prompt: str = "") -> bytes:
        raise NotImplementedError

    async def close(self):
        pass


class RemoteComicService:
    """Generates finished comic pages end-to-end on a server."""

    @property
    def is_authorized(self) -> bool:
        return False

    async def is_reachable(self) -> bool:
        return False

    async def generate_comic_pages(
        self, story: str, dreamer_profile: Optional[DreamerProfile] = None
    ) -> list[bytes]:
        raise NotImplementedError

    async def close(self):
        pass
