"""
Dream Comic — Remote comic backend.

One request → the backend handles layout and image generation → the
response carries finished page images. Used instead of the local
pipeline whenever the caller is signed in and the server answers.
"""

import base64
import binascii
import logging
import os
from typing import Optional

import httpx

from dream_comic.collaborators import RemoteComicService
from dream_comic.config import DEFAULT_BACKEND_URL
from dream_comic.errors import BackendError, CollaboratorTimeout
from dream_comic.models import DreamerProfile

logger = logging.getLogger(__name__)

GENERATE_PAGE_PATH = "ai/generate-comic-page"
REQUEST_TIMEOUT = 180
PROBE_TIMEOUT = 5


class BackendComicService(RemoteComicService):
    """Client for the comic backend's single-shot page endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        base_url = base_url or os.environ.get("DREAM_COMIC_BACKEND_URL", DEFAULT_BACKEND_URL)
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.auth_token = auth_token if auth_token is not None else os.environ.get("DREAM_COMIC_AUTH_TOKEN", "")
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_authorized(self) -> bool:
        return bool(self.auth_token)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def is_reachable(self) -> bool:
        """Any HTTP answer from the server counts; network errors do not."""
        client = await self._get_client()
        try:
            await client.get("", timeout=PROBE_TIMEOUT)
            return True
        except httpx.HTTPError as e:
            logger.info(f"Comic backend unreachable: {e}")
            return False

    async def generate_comic_pages(
        self, story: str, dreamer_profile: Optional[DreamerProfile] = None
    ) -> list[bytes]:
        """
        Generate finished pages for a story.

        Returns:
            Page images in page order.

        Raises:
            BackendError: non-success status or malformed response
            CollaboratorTimeout: the backend did not answer in time
        """
        body = {"rewritten_text": story}
        if dreamer_profile is not None:
            body["dreamer_profile"] = dreamer_profile.to_dict()

        client = await self._get_client()
        try:
            response = await client.post(GENERATE_PAGE_PATH, headers=self._headers(), json=body)
        except httpx.TimeoutException as e:
            raise CollaboratorTimeout(f"Comic backend timed out: {e}") from e
        except httpx.HTTPError as e:
            raise BackendError(f"Comic backend request failed: {e}") from e

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(f"Comic backend returned invalid JSON: {e}") from e

        entries = data.get("pages") if isinstance(data, dict) else None
        if not isinstance(entries, list) or not entries:
            raise BackendError("Comic backend returned no pages")

        entries = sorted(
            (e for e in entries if isinstance(e, dict)),
            key=lambda e: e.get("page_number", 0),
        )
        pages = []
        for entry in entries:
            pages.append(await self._page_bytes(client, entry))

        logger.info(f"Comic backend returned {len(pages)} page(s)")
        return pages

    def _raise_for_status(self, response: httpx.Response):
        status = response.status_code
        if response.is_success:
            return
        if status == 401:
            raise BackendError("Unauthorized - sign in again", status_code=status)
        if status == 404:
            raise BackendError("Resource not found", status_code=status)
        if status == 409:
            raise BackendError("Conflict with existing resource", status_code=status)
        raise BackendError(
            f"Comic backend error ({status}): {response.text[:500]}", status_code=status
        )

    async def _page_bytes(self, client: httpx.AsyncClient, entry: dict) -> bytes:
        encoded = entry.get("image_base64")
        if encoded:
            try:
                return base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError) as e:
                raise BackendError(f"Page {entry.get('page_number')}: bad base64 image") from e

        url = entry.get("image_url")
        if url:
            try:
                response = await client.get(url)
            except httpx.TimeoutException as e:
                raise CollaboratorTimeout(f"Page download timed out: {e}") from e
            except httpx.HTTPError as e:
                raise BackendError(f"Page download failed: {e}") from e
            self._raise_for_status(response)
            return response.content

        raise BackendError(f"Page {entry.get('page_number')} has no image")

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
