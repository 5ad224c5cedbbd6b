from __future__ import annotations

import asyncio
import io
from datetime import datetime, timezone

from PIL import Image

from tootsnap.controller import Environment
from tootsnap.errors import ImageLoadError, NotAuthenticatedError, RenderUnavailableError
from tootsnap.models import Author, Card, Context, MediaAttachment, Post
from tootsnap.state import ExportState


def png_bytes(color: tuple[int, int, int] = (255, 0, 0), size: tuple[int, int] = (4, 4)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_post(
    post_id: str = "1",
    *,
    content: str = "<p>Hello <a href=\"https://example.com/tags/world\">#world</a></p>",
    attachments: list[MediaAttachment] | None = None,
    avatar_url: str | None = None,
    card: Card | None = None,
    in_reply_to_id: str | None = None,
) -> Post:
    return Post(
        id=post_id,
        url=f"https://example.com/@user/{post_id}",
        created_at=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
        content=content,
        author=Author(
            username="@user@example.com",
            display_name="User",
            avatar_url=avatar_url or f"https://example.com/avatars/{post_id}.png",
        ),
        media_attachments=attachments or [],
        card=card,
        in_reply_to_id=in_reply_to_id,
    )


def make_attachment(index: int, *, perceptual_hash: str | None = "LEHV6nWB2yk8pyo0adR*.7kCMdnj") -> MediaAttachment:
    return MediaAttachment(
        id=f"media-{index}",
        type="image",
        source_url=f"https://example.com/media/{index}.png",
        preview_url=f"https://example.com/media/{index}-small.png",
        width=400,
        height=300,
        perceptual_hash=perceptual_hash,
    )


class StubPostFetcher:
    def __init__(
        self,
        post: Post | None = None,
        context: Context | None = None,
        *,
        post_error: Exception | None = None,
        context_error: Exception | None = None,
        requires_auth: bool = False,
        post_delay: float = 0.0,
        context_delay: float = 0.0,
    ) -> None:
        self.post = post or make_post()
        self.context = context or Context()
        self.post_error = post_error
        self.context_error = context_error
        self.requires_auth = requires_auth
        self.post_delay = post_delay
        self.context_delay = context_delay
        self.calls: list[tuple[str, str, str | None]] = []

    async def fetch_post(self, url: str, auth_token: str | None = None) -> Post:
        self.calls.append(("post", url, auth_token))
        await asyncio.sleep(self.post_delay)
        if self.requires_auth and auth_token is None:
            raise NotAuthenticatedError("login required")
        if self.post_error is not None:
            raise self.post_error
        return self.post

    async def fetch_context(self, url: str, auth_token: str | None = None) -> Context:
        self.calls.append(("context", url, auth_token))
        await asyncio.sleep(self.context_delay)
        if self.requires_auth and auth_token is None:
            raise NotAuthenticatedError("login required")
        if self.context_error is not None:
            raise self.context_error
        return self.context


class StubImageLoader:
    def __init__(
        self,
        *,
        delays: dict[str, float] | None = None,
        failing: set[str] | None = None,
        image: bytes | None = None,
    ) -> None:
        self.delays = delays or {}
        self.failing = failing or set()
        self.image = image or png_bytes()
        self.requested: list[str] = []

    async def load_image(self, url: str) -> bytes:
        self.requested.append(url)
        await asyncio.sleep(self.delays.get(url, 0.0))
        if url in self.failing:
            raise ImageLoadError(f"cannot load {url}")
        return self.image


class StubRenderer:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.snapshots: list[ExportState] = []

    @property
    def calls(self) -> int:
        return len(self.snapshots)

    def render(self, state: ExportState) -> bytes:
        self.snapshots.append(state)
        if state.post is None:
            raise RenderUnavailableError("nothing loaded")
        if self.error is not None:
            raise self.error
        return f"render-{self.calls}".encode("utf-8")


class MemorySettingsStore:
    def __init__(self, blobs: dict[str, bytes] | None = None) -> None:
        self.blobs = dict(blobs or {})
        self.writes: list[tuple[str, bytes]] = []

    def read_blob(self, key: str) -> bytes | None:
        return self.blobs.get(key)

    def write_blob(self, key: str, data: bytes) -> None:
        self.writes.append((key, data))
        self.blobs[key] = data


class StubAuthenticator:
    def __init__(self, token: str | None = None, *, obtained: str = "token-123", error: Exception | None = None) -> None:
        self.token = token
        self.obtained = obtained
        self.error = error
        self.hosts: list[str] = []

    @property
    def existing_token(self) -> str | None:
        return self.token

    async def obtain_token(self, host: str) -> str:
        self.hosts.append(host)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        self.token = self.obtained
        return self.obtained

    def logout(self) -> None:
        self.token = None


class StubHashDecoder:
    def decode(self, perceptual_hash: str, width: int, height: int) -> bytes | None:
        if perceptual_hash == "invalid":
            return None
        return f"{perceptual_hash}:{width}x{height}".encode("utf-8")


def make_environment(**overrides) -> Environment:
    collaborators = {
        "fetcher": StubPostFetcher(),
        "image_loader": StubImageLoader(),
        "renderer": StubRenderer(),
        "settings_store": MemorySettingsStore(),
        "authenticator": StubAuthenticator(),
        "hash_decoder": StubHashDecoder(),
    }
    collaborators.update(overrides)
    return Environment(**collaborators)
