"""Side effects requested by the reducers and executed by the runtime."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from tootsnap.media import ImageKey

if TYPE_CHECKING:
    from tootsnap.state import ExportState

RENDER_EFFECT_ID = "render"


@dataclass(frozen=True)
class Dispatch:
    """Feed an action back into the reducer right after the current one."""

    action: Any


@dataclass(frozen=True)
class FetchPost:
    url: str
    auth_token: str | None


@dataclass(frozen=True)
class FetchContext:
    url: str
    auth_token: str | None


@dataclass(frozen=True)
class FetchImage:
    key: ImageKey


@dataclass(frozen=True)
class WriteSettings:
    """Persist a settings blob; produces no completion action."""

    key: str
    blob: bytes


@dataclass(frozen=True)
class Render:
    """Composite the snapshot after a quiet period; later renders supersede pending ones."""

    snapshot: "ExportState"
    debounce_seconds: float
    effect_id: str = RENDER_EFFECT_ID


@dataclass(frozen=True)
class CancelRender:
    """Drop a render still waiting out its quiet period; a running one completes."""

    effect_id: str = RENDER_EFFECT_ID


@dataclass(frozen=True)
class ObtainToken:
    host: str


@dataclass(frozen=True)
class ClearToken:
    pass


Effect = Union[
    Dispatch,
    FetchPost,
    FetchContext,
    FetchImage,
    WriteSettings,
    Render,
    CancelRender,
    ObtainToken,
    ClearToken,
]
