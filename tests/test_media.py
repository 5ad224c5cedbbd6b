import io

import httpx
import pytest
from PIL import Image
from stubs import png_bytes

from tootsnap.errors import ImageLoadError
from tootsnap.media import BlurhashDecoder, HttpImageLoader, image_mime_type, placeholder_size
from tootsnap.models import ImageReference

BLURHASH = "LEHV6nWB2yk8pyo0adR*.7kCMdnj"


def test_placeholder_size_keeps_aspect_ratio() -> None:
    assert placeholder_size(ImageReference("u", width=400, height=200), 10) == (10, 5)
    assert placeholder_size(ImageReference("u", width=100, height=1), 10) == (10, 1)


def test_placeholder_size_is_square_without_dimensions() -> None:
    assert placeholder_size(ImageReference("u"), 10) == (10, 10)


def test_blurhash_decoder_produces_png_of_requested_size() -> None:
    data = BlurhashDecoder().decode(BLURHASH, 10, 8)

    assert data is not None
    assert image_mime_type(data) == "image/png"
    with Image.open(io.BytesIO(data)) as image:
        assert image.size == (10, 8)


def test_blurhash_decoder_returns_none_for_invalid_hash() -> None:
    assert BlurhashDecoder().decode("bad", 10, 10) is None


def test_image_mime_type_rejects_non_images() -> None:
    assert image_mime_type(b"definitely not an image") is None


@pytest.mark.anyio
async def test_http_image_loader_returns_verified_bytes() -> None:
    image = png_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/ok.png":
            return httpx.Response(200, content=image)
        if request.url.path == "/text":
            return httpx.Response(200, content=b"<html></html>")
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        loader = HttpImageLoader(client)
        assert await loader.load_image("https://example.com/ok.png") == image

        with pytest.raises(ImageLoadError):
            await loader.load_image("https://example.com/missing.png")

        with pytest.raises(ImageLoadError):
            await loader.load_image("https://example.com/text")
