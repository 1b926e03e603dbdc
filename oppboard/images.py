"""HTTP client for the image host used for opportunity logos."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any

import httpx

from .config import Config, ConfigError
from .errors import UpstreamError

logger = logging.getLogger(__name__)

UPLOAD_BASE_URL = "https://api.cloudinary.com/v1_1"


class ImageHostClient:
    """Lightweight wrapper over :mod:`httpx` for unsigned image uploads."""

    def __init__(self, config: Config, *, client: httpx.Client | None = None) -> None:
        if not config.image_host_cloud_name or not config.image_host_upload_preset:
            raise ConfigError(
                "Image host configuration is missing; set CLOUDINARY_CLOUD_NAME "
                "and CLOUDINARY_UPLOAD_PRESET"
            )
        self._config = config
        self._client = client or httpx.Client(timeout=config.http_timeout, follow_redirects=True)

    def close(self) -> None:
        self._client.close()

    @property
    def upload_url(self) -> str:
        return f"{UPLOAD_BASE_URL}/{self._config.image_host_cloud_name}/image/upload"

    def _perform_request(self, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.post(self.upload_url, **kwargs)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Image upload failed: {exc}") from exc
        if response.is_error:
            raise UpstreamError(
                f"Image upload failed: {response.status_code} {response.text[:200]}"
            )
        return response

    def upload(self, content: bytes, filename: str) -> str:
        """Upload ``content`` and return the durable HTTPS URL of the stored image."""

        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        response = self._perform_request(
            files={"file": (filename, content, content_type)},
            data={"upload_preset": self._config.image_host_upload_preset},
        )
        try:
            secure_url = response.json().get("secure_url")
        except ValueError as exc:
            raise UpstreamError("Image host returned a non-JSON response") from exc
        if not secure_url:
            raise UpstreamError("Image host response did not include a URL")
        logger.info("Uploaded %s (%d bytes) to %s", filename, len(content), secure_url)
        return str(secure_url)

    def upload_file(self, path: Path) -> str:
        return self.upload(path.read_bytes(), path.name)
