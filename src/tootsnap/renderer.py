"""SVG rendering of the visible thread into one shareable composite image."""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field
from importlib.resources import files
from typing import Protocol

from jinja2 import Environment

from tootsnap.config import DisplaySettings, ImageStyle, LinkStyle
from tootsnap.content import RichText, TextRun
from tootsnap.errors import RenderUnavailableError
from tootsnap.media import image_mime_type
from tootsnap.models import Card, ImageReference, Post
from tootsnap.state import ExportState

WIDTH = 400
PADDING = 16
GAP = 6
AVATAR_SIZE = 44
FONT_SIZE = 17
SMALL_FONT_SIZE = 12
LINE_HEIGHT = 23
SMALL_LINE_HEIGHT = 17
CHARS_PER_LINE = 38
FAN_THUMB_WIDTH = 50
FAN_COLUMN_WIDTH = 70
MAX_STACKED_HEIGHT = 520
CORNER_RADIUS = 15
DIVIDER_COLOR = "#808080"

_WORD_RE = re.compile(r"\S+\s*|\s+")


class Renderer(Protocol):
    def render(self, state: ExportState) -> bytes:
        """Composite the visible posts, raising RenderUnavailableError if impossible."""
        ...


@dataclass(frozen=True)
class Segment:
    text: str
    color: str
    link: str | None = None


@dataclass(frozen=True)
class TextElement:
    x: float
    y: float
    segments: list[Segment]
    size: int = FONT_SIZE
    weight: str = "normal"
    opacity: float = 1.0
    kind: str = "text"


@dataclass(frozen=True)
class ImageElement:
    x: float
    y: float
    width: float
    height: float
    href: str | None
    rotate: float = 0.0
    kind: str = "image"

    @property
    def cx(self) -> float:
        return round(self.x + self.width / 2, 1)

    @property
    def cy(self) -> float:
        return round(self.y + self.height / 2, 1)


@dataclass(frozen=True)
class RectElement:
    x: float
    y: float
    width: float
    height: float
    color: str
    opacity: float = 1.0
    stroke: str | None = None
    radius: float = 0.0
    kind: str = "rect"


@dataclass
class _Canvas:
    elements: list = field(default_factory=list)
    y: float = PADDING


def _data_uri(image: bytes | None) -> str | None:
    if image is None:
        return None
    mime = image_mime_type(image)
    if mime is None:
        return None
    return f"data:{mime};base64,{base64.b64encode(image).decode('ascii')}"


def _push_segment(line: list[Segment], text: str, color: str, link: str | None) -> None:
    if line and line[-1].color == color and line[-1].link == link:
        previous = line.pop()
        line.append(Segment(text=previous.text + text, color=color, link=link))
        return
    line.append(Segment(text=text, color=color, link=link))


def wrap_runs(runs: tuple[TextRun, ...], text_color: str, width_chars: int) -> list[list[Segment]]:
    """Greedy word wrap across runs, keeping each run's colour and link."""

    lines: list[list[Segment]] = [[]]
    line_length = 0

    for run in runs:
        color = run.color or text_color
        for index, paragraph in enumerate(run.text.split("\n")):
            if index > 0:
                lines.append([])
                line_length = 0
            for word in _WORD_RE.findall(paragraph):
                if line_length > 0 and line_length + len(word.rstrip()) > width_chars:
                    lines.append([])
                    line_length = 0
                    word = word.lstrip()
                if not word:
                    continue
                _push_segment(lines[-1], word, color, run.link)
                line_length += len(word)

    while lines and not lines[-1]:
        lines.pop()
    return lines


def _scaled_height(reference: ImageReference, width: float) -> float:
    if reference.width <= 0 or reference.height <= 0:
        return width
    return width * reference.height / reference.width


def _date_display(post: Post) -> str:
    return post.created_at.strftime("%Y-%m-%d %H:%M").strip()


class SvgRenderer:
    """Renderer producing an SVG document, one block per visible post."""

    def __init__(self) -> None:
        template_source = files("tootsnap.templates").joinpath("post.svg.j2").read_text(encoding="utf-8")
        environment = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._template = environment.from_string(template_source)

    def render(self, state: ExportState) -> bytes:
        if state.post is None:
            raise RenderUnavailableError("No post has been loaded")

        posts = state.visible_posts
        canvas = _Canvas()
        for index, post in enumerate(posts):
            if index > 0:
                canvas.elements.append(
                    RectElement(x=0, y=canvas.y, width=WIDTH, height=2, color=DIVIDER_COLOR, opacity=0.25)
                )
                canvas.y += 2 + PADDING
            self._render_post(canvas, post, state)
            canvas.y += PADDING

        settings = state.settings
        document = self._template.render(
            width=WIDTH,
            height=round(canvas.y, 1),
            background=settings.background_color,
            corner_radius=CORNER_RADIUS if settings.round_corners else 0,
            elements=canvas.elements,
        )
        return document.encode("utf-8")

    def _render_post(self, canvas: _Canvas, post: Post, state: ExportState) -> None:
        settings = state.settings
        content_width = WIDTH - 2 * PADDING

        canvas.elements.append(
            ImageElement(
                x=PADDING,
                y=canvas.y,
                width=AVATAR_SIZE,
                height=AVATAR_SIZE,
                href=_data_uri(state.image_for(post.author.avatar_url)),
            )
        )
        name_x = PADDING + AVATAR_SIZE + 10
        canvas.elements.append(
            TextElement(
                x=name_x,
                y=canvas.y + 18,
                segments=[Segment(post.author.display_name, settings.text_color)],
                weight="bold",
            )
        )
        canvas.elements.append(
            TextElement(
                x=name_x,
                y=canvas.y + 37,
                segments=[Segment(post.author.username, settings.text_color)],
                size=SMALL_FONT_SIZE + 2,
                opacity=0.7,
            )
        )
        canvas.y += AVATAR_SIZE + 12

        rich_text = state.attributed_content.get(post.id)
        runs = rich_text.runs if isinstance(rich_text, RichText) else (TextRun(post.content),)

        attachments = [attachment.image_reference() for attachment in post.media_attachments]
        fan = settings.image_style == ImageStyle.FAN and attachments
        width_chars = CHARS_PER_LINE - (FAN_COLUMN_WIDTH // 9 if fan else 0)

        text_top = canvas.y
        for line in wrap_runs(runs, settings.text_color, width_chars):
            canvas.elements.append(TextElement(x=PADDING, y=canvas.y + FONT_SIZE, segments=line))
            canvas.y += LINE_HEIGHT

        if fan:
            self._fan(canvas, attachments, state, text_top)
        elif attachments and settings.image_style == ImageStyle.STACKED:
            self._stacked(canvas, attachments, state, content_width)
        elif attachments:
            self._grid(canvas, attachments, state, content_width)
        elif post.card is not None:
            self._card(canvas, post.card, state, content_width)

        if settings.show_date:
            self._footnote(canvas, _date_display(post), settings)
        if settings.link_style == LinkStyle.INLINE:
            self._footnote(canvas, post.url, settings)

    def _grid(self, canvas: _Canvas, references: list[ImageReference], state: ExportState, content_width: float) -> None:
        canvas.y += GAP
        cell_width = (content_width - GAP * (len(references) - 1)) / len(references)
        row_height = 0.0
        for index, reference in enumerate(references):
            height = _scaled_height(reference, cell_width)
            canvas.elements.append(
                ImageElement(
                    x=round(PADDING + index * (cell_width + GAP), 1),
                    y=canvas.y,
                    width=round(cell_width, 1),
                    height=round(height, 1),
                    href=_data_uri(state.image_for(reference.url)),
                )
            )
            row_height = max(row_height, height)
        canvas.y += row_height + GAP

    def _stacked(self, canvas: _Canvas, references: list[ImageReference], state: ExportState, content_width: float) -> None:
        for reference in references:
            canvas.y += GAP
            height = min(_scaled_height(reference, content_width), MAX_STACKED_HEIGHT)
            canvas.elements.append(
                ImageElement(
                    x=PADDING,
                    y=canvas.y,
                    width=content_width,
                    height=round(height, 1),
                    href=_data_uri(state.image_for(reference.url)),
                )
            )
            canvas.y += height
        canvas.y += GAP

    def _fan(self, canvas: _Canvas, references: list[ImageReference], state: ExportState, top: float) -> None:
        x = WIDTH - PADDING - FAN_COLUMN_WIDTH + (FAN_COLUMN_WIDTH - FAN_THUMB_WIDTH) / 2
        bottom = top
        for index, reference in enumerate(references):
            height = _scaled_height(reference, FAN_THUMB_WIDTH)
            canvas.elements.append(
                ImageElement(
                    x=x,
                    y=top,
                    width=FAN_THUMB_WIDTH,
                    height=round(height, 1),
                    href=_data_uri(state.image_for(reference.url)),
                    rotate=float(index * 10),
                )
            )
            bottom = max(bottom, top + height)
        canvas.y = max(canvas.y, bottom + GAP)

    def _card(self, canvas: _Canvas, card: Card, state: ExportState, content_width: float) -> None:
        settings = state.settings
        canvas.y += GAP
        card_top = canvas.y

        elements: list = []
        if card.preview_image_url:
            reference = ImageReference(card.preview_image_url, card.perceptual_hash, card.width, card.height)
            height = min(_scaled_height(reference, content_width), MAX_STACKED_HEIGHT / 2)
            elements.append(
                ImageElement(
                    x=PADDING,
                    y=canvas.y,
                    width=content_width,
                    height=round(height, 1),
                    href=_data_uri(state.image_for(card.preview_image_url)),
                )
            )
            canvas.y += height

        canvas.y += 6
        title_runs = (TextRun(card.title),)
        for line in wrap_runs(title_runs, settings.text_color, CHARS_PER_LINE - 2):
            elements.append(TextElement(x=PADDING + 8, y=canvas.y + SMALL_FONT_SIZE + 2, segments=line, size=SMALL_FONT_SIZE + 2, weight="bold"))
            canvas.y += SMALL_LINE_HEIGHT + 2
        if card.description:
            for line in wrap_runs((TextRun(card.description),), settings.text_color, CHARS_PER_LINE + 6):
                elements.append(TextElement(x=PADDING + 8, y=canvas.y + SMALL_FONT_SIZE, segments=line, size=SMALL_FONT_SIZE, opacity=0.7))
                canvas.y += SMALL_LINE_HEIGHT
        canvas.y += 6

        canvas.elements.append(
            RectElement(
                x=PADDING,
                y=card_top,
                width=content_width,
                height=round(canvas.y - card_top, 1),
                color="none",
                stroke=settings.text_color,
                radius=8,
                opacity=0.3,
            )
        )
        canvas.elements.extend(elements)
        canvas.y += GAP

    def _footnote(self, canvas: _Canvas, text: str, settings: DisplaySettings) -> None:
        canvas.elements.append(
            TextElement(
                x=PADDING,
                y=canvas.y + SMALL_FONT_SIZE + 4,
                segments=[Segment(text, settings.text_color)],
                size=SMALL_FONT_SIZE,
                opacity=0.8,
            )
        )
        canvas.y += SMALL_LINE_HEIGHT + 4
