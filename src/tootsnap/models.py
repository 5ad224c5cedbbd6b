"""Domain models used by tootsnap."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MediaType(str, Enum):
    IMAGE = "image"
    GIFV = "gifv"
    VIDEO = "video"
    AUDIO = "audio"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "MediaType":
        return cls.UNKNOWN


@dataclass(frozen=True)
class ImageReference:
    """A displayable image URL plus what is needed to draw its placeholder."""

    url: str
    perceptual_hash: str | None = None
    width: int = 0
    height: int = 0


class Author(BaseModel):
    """The account that wrote a post."""

    model_config = ConfigDict(frozen=True)

    # Always "@user@host"; see fetcher.normalize_handle.
    username: str
    # May carry raw :shortcode: markup, escape before use in markup contexts.
    display_name: str
    avatar_url: str


class MediaAttachment(BaseModel):
    """A media item attached to a post."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: MediaType = MediaType.UNKNOWN
    source_url: str
    preview_url: str
    width: int = 0
    height: int = 0
    perceptual_hash: str | None = None

    @model_validator(mode="before")
    @classmethod
    def fill_fallbacks(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        filled = dict(data)
        source_url = filled.get("source_url")
        if not filled.get("id") and source_url:
            filled["id"] = source_url
        if not filled.get("preview_url") and source_url:
            filled["preview_url"] = source_url
        return filled

    @property
    def display_url(self) -> str:
        if self.type == MediaType.IMAGE:
            return self.source_url
        return self.preview_url

    def image_reference(self) -> ImageReference:
        return ImageReference(
            url=self.display_url,
            perceptual_hash=self.perceptual_hash,
            width=self.width,
            height=self.height,
        )


class Card(BaseModel):
    """Link-preview metadata attached to a post."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str | None = None
    link_url: str
    preview_image_url: str | None = None
    perceptual_hash: str | None = None
    width: int = 0
    height: int = 0


class Post(BaseModel):
    """A single status as returned by the server."""

    model_config = ConfigDict(frozen=True)

    id: str
    url: str
    created_at: datetime
    content: str
    author: Author
    media_attachments: list[MediaAttachment] = Field(default_factory=list)
    card: Card | None = None
    in_reply_to_id: str | None = None

    def image_references(self) -> list[ImageReference]:
        """Every image the post displays, attachments first, without duplicate URLs."""

        references = [attachment.image_reference() for attachment in self.media_attachments]
        references.append(ImageReference(url=self.author.avatar_url))
        if self.card is not None and self.card.preview_image_url:
            references.append(
                ImageReference(
                    url=self.card.preview_image_url,
                    perceptual_hash=self.card.perceptual_hash,
                    width=self.card.width,
                    height=self.card.height,
                )
            )

        seen: set[str] = set()
        result: list[ImageReference] = []
        for reference in references:
            if reference.url in seen:
                continue
            seen.add(reference.url)
            result.append(reference)
        return result


class Context(BaseModel):
    """The conversation thread around a post, excluding the post itself."""

    model_config = ConfigDict(frozen=True)

    ancestors: list[Post] = Field(default_factory=list)
    descendants: list[Post] = Field(default_factory=list)

    @property
    def all_posts(self) -> list[Post]:
        return [*self.ancestors, *self.descendants]


class ExportReport(BaseModel):
    """Final export summary returned by export_post."""

    url: str
    post_id: str
    output: Path
    posts_included: int
    images_loaded: int
    share_caption: str | None = None
