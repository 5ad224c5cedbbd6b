"""The closed action vocabulary processed by the export controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from tootsnap.config import ImageStyle, LinkStyle
from tootsnap.media import ImageKey
from tootsnap.models import Context, Post

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    error: BaseException


Result = Union[Success[T], Failure]


@dataclass(frozen=True)
class ImageLoadResponse:
    key: ImageKey
    image: bytes


# Settings sub-actions.


@dataclass(frozen=True)
class LoadSettings:
    pass


@dataclass(frozen=True)
class SaveSettings:
    pass


@dataclass(frozen=True)
class ResetSettings:
    pass


@dataclass(frozen=True)
class TextColorChanged:
    color: str


@dataclass(frozen=True)
class LinkColorChanged:
    color: str


@dataclass(frozen=True)
class BackgroundColorChanged:
    color: str


@dataclass(frozen=True)
class ShowDateToggled:
    show: bool


@dataclass(frozen=True)
class RoundCornersToggled:
    enabled: bool


@dataclass(frozen=True)
class ImageStyleChanged:
    style: ImageStyle


@dataclass(frozen=True)
class LinkStyleChanged:
    style: LinkStyle


SettingsAction = Union[
    LoadSettings,
    SaveSettings,
    ResetSettings,
    TextColorChanged,
    LinkColorChanged,
    BackgroundColorChanged,
    ShowDateToggled,
    RoundCornersToggled,
    ImageStyleChanged,
    LinkStyleChanged,
]

FIELD_CHANGES = (
    TextColorChanged,
    LinkColorChanged,
    BackgroundColorChanged,
    ShowDateToggled,
    RoundCornersToggled,
    ImageStyleChanged,
    LinkStyleChanged,
)


# Export actions.


@dataclass(frozen=True)
class Requested:
    url: str


@dataclass(frozen=True)
class Rerequest:
    pass


@dataclass(frozen=True)
class PostFetchCompleted:
    result: Result[Post]


@dataclass(frozen=True)
class ContextFetchCompleted:
    result: Result[Context]


@dataclass(frozen=True)
class ImageFetchCompleted:
    result: Result[ImageLoadResponse]


@dataclass(frozen=True)
class ToggledPostVisibility:
    post: Post


@dataclass(frozen=True)
class Settings:
    action: SettingsAction


@dataclass(frozen=True)
class RenderCompleted:
    result: Result[bytes]


@dataclass(frozen=True)
class LoginRequested:
    host: str


@dataclass(frozen=True)
class LoginCompleted:
    result: Result[str]


@dataclass(frozen=True)
class LogoutRequested:
    pass


Action = Union[
    Requested,
    Rerequest,
    PostFetchCompleted,
    ContextFetchCompleted,
    ImageFetchCompleted,
    ToggledPostVisibility,
    Settings,
    RenderCompleted,
    LoginRequested,
    LoginCompleted,
    LogoutRequested,
]
