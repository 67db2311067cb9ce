"""Media upload client (Cloudinary unsigned uploads)."""

import mimetypes
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from colocapp.utils.errors import UploadError
from colocapp.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class MediaUploader(ABC):
    """Uploads a local media reference and returns a durable URL."""

    @abstractmethod
    async def upload(self, local_ref: str) -> str:
        ...


def local_path(local_ref: str) -> Path:
    """Resolve a device URI (``file:///...``) or plain path to a filesystem path."""
    parsed = urlparse(local_ref)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(local_ref)


class CloudinaryUploader(MediaUploader):
    """Multipart upload to a Cloudinary upload endpoint using an upload preset."""

    def __init__(
        self,
        upload_url: str,
        upload_preset: str,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        if not upload_url:
            raise UploadError("CLOUDINARY_UPLOAD_URL must be set")
        self.upload_url = upload_url
        self.upload_preset = upload_preset
        self.api_key = api_key
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def upload(self, local_ref: str) -> str:
        path = local_path(local_ref)
        try:
            content = path.read_bytes()
        except OSError as e:
            raise UploadError(f"Cannot read photo {path.name}: {e}") from e

        content_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        form = {"upload_preset": self.upload_preset, "timestamp": str(int(time.time()))}
        if self.api_key:
            form["api_key"] = self.api_key

        try:
            response = await self._http.post(
                self.upload_url,
                data=form,
                files={"file": (path.name, content, content_type)},
            )
        except httpx.HTTPError as e:
            raise UploadError(f"Upload of {path.name} failed: {e}") from e

        payload = response.json() if response.content else {}
        if response.status_code >= 400:
            message = (payload.get("error") or {}).get("message") or f"HTTP {response.status_code}"
            raise UploadError(f"Upload of {path.name} failed: {message}")

        url = payload.get("secure_url")
        if not url:
            raise UploadError("Invalid response from media host (no secure_url)")

        logger.debug("Photo uploaded", filename=path.name, size_bytes=len(content))
        return url

    async def aclose(self) -> None:
        await self._http.aclose()
