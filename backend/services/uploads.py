"""File upload service (Cloudinary unsigned uploads).

One external call per upload, no retry. Also fetches stored files back so
images can be passed inline to the assistant.
"""

import logging

import httpx

from config import get_settings
from services.types import Attachment, UploadResult

logger = logging.getLogger(__name__)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


class UploadError(Exception):
    """Raised when a file cannot be uploaded or fetched."""


class FileTooLargeError(UploadError):
    """Raised when an attachment exceeds the size limit."""


class UploadService:
    """Uploads attachments to Cloudinary and fetches them back."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self.settings = get_settings()
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                timeout=self.settings.upload_timeout_seconds, connect=10.0
            ),
        )

    @property
    def upload_url(self) -> str:
        return f"{CLOUDINARY_API_BASE}/{self.settings.cloudinary_cloud_name}/auto/upload"

    async def upload(self, attachment: Attachment) -> UploadResult:
        """Upload one attachment.

        Raises:
            FileTooLargeError: If the attachment exceeds the configured limit.
            UploadError: If the upload call fails or returns an unusable body.
        """
        if attachment.size > self.settings.max_upload_size_bytes:
            raise FileTooLargeError(
                f"{attachment.filename} exceeds {self.settings.max_upload_size_mb} MB"
            )

        try:
            response = await self._client.post(
                self.upload_url,
                data={"upload_preset": self.settings.cloudinary_upload_preset},
                files={
                    "file": (
                        attachment.filename,
                        attachment.data,
                        attachment.content_type,
                    )
                },
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Upload of %s rejected (%s): %s",
                attachment.filename,
                e.response.status_code,
                e.response.text[:200],
            )
            raise UploadError(f"Upload rejected: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Upload of %s failed: %s", attachment.filename, e)
            raise UploadError(f"Upload failed: {e}") from e

        try:
            result = UploadResult(
                url=body.get("secure_url") or body["url"],
                public_id=body["public_id"],
                resource_type=body.get("resource_type", "raw"),
            )
        except KeyError as e:
            raise UploadError(f"Upload response missing {e}") from e

        logger.info(
            "Uploaded %s (%d bytes) as %s",
            attachment.filename,
            attachment.size,
            result.public_id,
        )
        return result

    async def fetch(self, url: str) -> tuple[bytes, str]:
        """Download a stored file.

        Returns:
            Tuple of (content, mime type).
        """
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Failed to fetch %s: %s", url, e)
            raise UploadError(f"Failed to fetch file: {e}") from e

        mime_type = response.headers.get("content-type", "application/octet-stream")
        return response.content, mime_type.split(";")[0].strip()

    async def aclose(self) -> None:
        await self._client.aclose()
