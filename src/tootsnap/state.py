"""The state owned by the export controller."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from tootsnap.config import DisplaySettings
from tootsnap.content import RichText
from tootsnap.media import ImageKey, ImageKind
from tootsnap.models import Context, Post


class ExportState(BaseModel):
    """Everything the export screen shows; replaced wholesale on every action."""

    model_config = ConfigDict(frozen=True)

    last_requested_url: str | None = None
    post: Post | None = None
    context: Context | None = None
    attributed_content: dict[str, RichText] = Field(default_factory=dict)
    error_message: str | None = None
    authentication_required: bool = False
    rendered_image: bytes | None = None
    settings: DisplaySettings = Field(default_factory=DisplaySettings)
    image_cache: dict[ImageKey, bytes] = Field(default_factory=dict)
    visible_post_ids: frozenset[str] = frozenset()

    @property
    def all_posts(self) -> list[Post]:
        """Thread order: ancestors, the post itself, then replies."""

        if self.post is None:
            return []
        if self.context is None:
            return [self.post]
        return [*self.context.ancestors, self.post, *self.context.descendants]

    @property
    def visible_posts(self) -> list[Post]:
        return [post for post in self.all_posts if post.id in self.visible_post_ids]

    def is_image_visible(self, url: str) -> bool:
        """Whether any currently visible post displays the image at url."""

        return any(
            reference.url == url
            for post in self.visible_posts
            for reference in post.image_references()
        )

    def image_for(self, url: str) -> bytes | None:
        """The loaded image for url, falling back to its placeholder."""

        remote = self.image_cache.get(ImageKey(url, ImageKind.REMOTE))
        if remote is not None:
            return remote
        return self.image_cache.get(ImageKey(url, ImageKind.BLURHASH))
