"""Object storage for uploaded files."""

import asyncio
import uuid
from pathlib import Path
from typing import Protocol

from app.core.config import Settings, settings
from app.core.exceptions import ValidationError


class Storage(Protocol):
    async def upload(
        self,
        content: bytes,
        filename: str | None,
        content_type: str | None,
        folder: str,
    ) -> dict[str, str]: ...


class LocalStorage:
    """
    Writes files under ``UPLOAD_DIR`` and serves them from ``UPLOAD_BASE_URL``.

    Returns ``{"url": ..., "filename": ...}``.
    """

    def __init__(self, upload_dir: str, base_url: str) -> None:
        self.upload_dir = Path(upload_dir)
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalStorage":
        return cls(settings.UPLOAD_DIR, settings.UPLOAD_BASE_URL)

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)

    async def upload(
        self,
        content: bytes,
        filename: str | None,
        content_type: str | None,
        folder: str,
    ) -> dict[str, str]:
        # Generate unique filename
        file_ext = Path(filename).suffix if filename else ".jpg"
        unique_filename = f"{uuid.uuid4()}{file_ext}"

        await asyncio.to_thread(self._write, self.upload_dir / folder / unique_filename, content)

        return {
            "url": f"{self.base_url}/{folder}/{unique_filename}",
            "filename": unique_filename,
        }


def validate_image_upload(content: bytes, content_type: str | None) -> None:
    """Reject non-image uploads and files over ``MAX_UPLOAD_SIZE``."""
    if content_type not in settings.ALLOWED_IMAGE_TYPES:
        raise ValidationError(
            f"Invalid file type. Allowed types: {', '.join(settings.ALLOWED_IMAGE_TYPES)}"
        )
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise ValidationError(
            f"File too large. Maximum size: {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB"
        )
