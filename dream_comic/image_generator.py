"""
Dream Comic — Leonardo Image Generator.

Image collaborator backed by Leonardo.ai. Text-to-image only: each
panel is generated independently from its sanitized prompt.

Submit → poll → download, all over one httpx client per call.
"""

import asyncio
import logging
import os
from typing import Optional

import httpx

from dream_comic.collaborators import ImageGenerator
from dream_comic.errors import CollaboratorTimeout

logger = logging.getLogger(__name__)

LEONARDO_BASE_URL = "https://cloud.leonardo.ai/api/rest/v1"
LEONARDO_MODEL_ID = "6b645e3a-d64f-4341-a6d8-7a3690fbf042"  # Leonardo Phoenix

# Square panels, matching the placeholder renderer
PANEL_WIDTH = 512
PANEL_HEIGHT = 512

POLL_INTERVAL = 5
MAX_WAIT = 300


class LeonardoImageGenerator(ImageGenerator):
    """Renders single comic panels with Leonardo.ai text-to-image."""

    supports_negative_prompt = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        poll_interval: float = POLL_INTERVAL,
        max_wait: float = MAX_WAIT,
    ):
        self.api_key = api_key or os.environ.get("LEONARDO_API_KEY", "")
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        if not self.api_key:
            logger.warning("LEONARDO_API_KEY not set - image generation unavailable")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def generate(self, prompt: str, negative_prompt: str = "") -> bytes:
        """
        Generate a single panel image.

        Returns:
            Image bytes as served by Leonardo (PNG).

        Raises:
            CollaboratorTimeout: the generation did not finish in time
            RuntimeError: the API rejected or failed the generation
        """
        try:
            async with httpx.AsyncClient(timeout=60) as client:
                payload = {
                    "prompt": prompt,
                    "width": PANEL_WIDTH,
                    "height": PANEL_HEIGHT,
                    "modelId": LEONARDO_MODEL_ID,
                    "num_images": 1,
                    "presetStyle": "NONE",  # style keywords come from the panel prompt
                    "public": False,
                    "alchemy": True,
                }
                if negative_prompt:
                    payload["negative_prompt"] = negative_prompt

                response = await client.post(
                    f"{LEONARDO_BASE_URL}/generations",
                    headers=self._headers(),
                    json=payload,
                )
                if not response.is_success:
                    raise RuntimeError(
                        f"Leonardo submit failed ({response.status_code}): "
                        f"{response.text[:500]}"
                    )

                generation_id = response.json()["sdGenerationJob"]["generationId"]
                logger.info(f"Leonardo panel submitted: {generation_id}")

                image_url = await self._poll_result(client, generation_id)
                return await self._download_image(client, image_url)
        except httpx.TimeoutException as e:
            raise CollaboratorTimeout(f"Leonardo request timed out: {e}") from e

    async def _poll_result(self, client: httpx.AsyncClient, generation_id: str) -> str:
        """Wait for a generation to finish; returns its first image URL."""
        elapsed = 0.0

        while elapsed < self.max_wait:
            await asyncio.sleep(self.poll_interval)
            elapsed += self.poll_interval

            response = await client.get(
                f"{LEONARDO_BASE_URL}/generations/{generation_id}",
                headers=self._headers(),
            )
            if not response.is_success:
                logger.warning(f"Leonardo poll failed: {response.status_code}")
                continue

            gen_info = response.json().get("generations_by_pk") or {}
            status = gen_info.get("status", "")

            if status == "COMPLETE":
                images = gen_info.get("generated_images", [])
                if not images:
                    raise RuntimeError("Leonardo finished without images")
                url = images[0].get("url", "")
                if not url:
                    raise RuntimeError("Leonardo image entry has no URL")
                logger.info(f"Leonardo generation complete ({elapsed:.0f}s)")
                return url

            elif status == "FAILED":
                raise RuntimeError(f"Leonardo generation {generation_id} failed")

            logger.debug(f"Leonardo status: {status} ({elapsed:.0f}s)")

        raise CollaboratorTimeout(f"Leonardo timed out after {self.max_wait}s")

    async def _download_image(self, client: httpx.AsyncClient, url: str) -> bytes:
        response = await client.get(url)
        if not response.is_success:
            raise RuntimeError(f"Panel download failed ({response.status_code})")
        logger.info(f"Image downloaded ({len(response.content):,} bytes)")
        return response.content
