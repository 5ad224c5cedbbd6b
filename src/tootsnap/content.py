"""Turn post markup into display-ready rich text."""

from __future__ import annotations

from dataclasses import dataclass

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.builder import ParserRejectedMarkup

from tootsnap.errors import ContentFormattingError

_BLOCK_TAGS = {"p", "div", "blockquote", "li", "pre", "h1", "h2", "h3", "h4", "h5", "h6"}


@dataclass(frozen=True)
class TextRun:
    """A span of text; link runs carry their target and colour."""

    text: str
    link: str | None = None
    color: str | None = None


@dataclass(frozen=True)
class RichText:
    """Formatted post content: an ordered sequence of runs."""

    runs: tuple[TextRun, ...]

    @property
    def plain_text(self) -> str:
        return "".join(run.text for run in self.runs)


def _is_invisible(tag: Tag) -> bool:
    classes = tag.get("class") or []
    return "invisible" in classes


def _append(runs: list[TextRun], text: str, link: str | None, color: str | None) -> None:
    if not text:
        return
    if runs and runs[-1].link == link and runs[-1].color == color:
        previous = runs.pop()
        runs.append(TextRun(text=previous.text + text, link=link, color=color))
        return
    runs.append(TextRun(text=text, link=link, color=color))


def _walk(node: Tag, runs: list[TextRun], link_color: str, link: str | None) -> None:
    for child in node.children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, NavigableString):
            _append(runs, str(child), link, link_color if link else None)
            continue
        if not isinstance(child, Tag):
            continue

        name = child.name.lower()
        if name in {"script", "style"} or _is_invisible(child):
            continue
        if name == "br":
            _append(runs, "\n", None, None)
            continue

        if name == "a" and child.get("href"):
            _walk(child, runs, link_color, str(child["href"]))
        else:
            _walk(child, runs, link_color, link)

        if "ellipsis" in (child.get("class") or []):
            _append(runs, "…", link, link_color if link else None)
        if name in _BLOCK_TAGS:
            _append(runs, "\n\n", None, None)


def _trim(runs: list[TextRun]) -> tuple[TextRun, ...]:
    while runs and not runs[-1].text.strip():
        runs.pop()
    if runs:
        last = runs.pop()
        runs.append(TextRun(text=last.text.rstrip(), link=last.link, color=last.color))
    return tuple(runs)


def attributed_content(markup: str, link_color: str) -> RichText:
    """Parse post markup, dropping embedded styling and colouring every link.

    Only text, line structure and link targets survive; fonts, inline styles
    and server colours are discarded. The result depends only on
    (markup, link_color).
    """

    if not isinstance(markup, str):
        raise ContentFormattingError(f"Post content must be text, got {type(markup).__name__}")

    try:
        soup = BeautifulSoup(markup, "lxml")
    except ParserRejectedMarkup as exc:
        raise ContentFormattingError(f"Could not parse post content: {exc}") from exc

    root = soup.body if soup.body is not None else soup
    runs: list[TextRun] = []
    _walk(root, runs, link_color, None)
    return RichText(runs=_trim(runs))
