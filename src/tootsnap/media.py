"""Image keys, perceptual-hash placeholders and image downloading."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import blurhash
import httpx
from PIL import Image, UnidentifiedImageError

from tootsnap.errors import ImageLoadError
from tootsnap.models import ImageReference

logger = logging.getLogger(__name__)


class ImageKind(str, Enum):
    REMOTE = "remote"
    BLURHASH = "blurhash"


@dataclass(frozen=True)
class ImageKey:
    """Cache key; a placeholder and the real image for one URL coexist."""

    url: str
    kind: ImageKind = ImageKind.REMOTE


class PerceptualHashDecoder(Protocol):
    def decode(self, perceptual_hash: str, width: int, height: int) -> bytes | None:
        """Decode a hash into encoded image bytes, or None if it is invalid."""
        ...


class ImageLoader(Protocol):
    async def load_image(self, url: str) -> bytes:
        """Download an image, raising ImageLoadError on failure."""
        ...


def placeholder_size(reference: ImageReference, target_width: int) -> tuple[int, int]:
    """Width and height for a placeholder, preserving the image's aspect ratio."""

    if reference.width <= 0 or reference.height <= 0:
        return target_width, target_width
    height = round(reference.height * (target_width / reference.width))
    return target_width, max(1, height)


def image_mime_type(data: bytes) -> str | None:
    """Sniff the MIME type of encoded image bytes."""

    try:
        with Image.open(io.BytesIO(data)) as image:
            return Image.MIME.get(image.format or "")
    except (UnidentifiedImageError, OSError):
        return None


class BlurhashDecoder:
    """Decodes blurhash strings into small PNG placeholders."""

    def decode(self, perceptual_hash: str, width: int, height: int) -> bytes | None:
        try:
            pixels = blurhash.decode(perceptual_hash, width, height)
        except ValueError:
            logger.debug("Invalid blurhash %r", perceptual_hash)
            return None

        image = Image.new("RGB", (width, height))
        image.putdata([tuple(int(channel) for channel in pixel) for row in pixels for pixel in row])
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()


class HttpImageLoader:
    """Downloads images with a shared httpx client and checks they decode."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def load_image(self, url: str) -> bytes:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ImageLoadError(f"Failed to download image '{url}': {exc}") from exc

        data = response.content
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.verify()
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageLoadError(f"Downloaded data from '{url}' is not an image") from exc
        return data
