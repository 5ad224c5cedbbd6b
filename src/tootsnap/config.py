"""Configuration models and enums for tootsnap."""

from __future__ import annotations

import json
import logging
import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class ImageStyle(str, Enum):
    GRID = "grid"
    STACKED = "stacked"
    FAN = "fan"


class LinkStyle(str, Enum):
    OMIT = "omit"
    INLINE = "inline"
    AFTER_IMAGE = "after_image"


def _validate_color(value: str) -> str:
    if not _HEX_COLOR_RE.match(value):
        raise ValueError(f"Expected a #RRGGBB colour, got '{value}'")
    return value.upper()


class DisplaySettings(BaseModel):
    """User-adjustable display preferences for the exported image."""

    model_config = ConfigDict(frozen=True)

    text_color: str = "#FFFFFF"
    link_color: str = "#007AFF"
    background_color: str = "#000000"
    show_date: bool = True
    round_corners: bool = False
    image_style: ImageStyle = ImageStyle.GRID
    link_style: LinkStyle = LinkStyle.AFTER_IMAGE

    @field_validator("text_color", "link_color", "background_color")
    @classmethod
    def validate_colors(cls, value: str) -> str:
        return _validate_color(value)

    def to_persisted(self) -> "PersistedSettings":
        return PersistedSettings(**self.model_dump())

    def encode(self) -> bytes:
        return self.to_persisted().model_dump_json().encode("utf-8")


class PersistedSettings(BaseModel):
    """On-disk form of DisplaySettings; every field may be missing."""

    model_config = ConfigDict(extra="ignore")

    text_color: str | None = None
    link_color: str | None = None
    background_color: str | None = None
    show_date: bool | None = None
    round_corners: bool | None = None
    image_style: ImageStyle | None = None
    link_style: LinkStyle | None = None

    @field_validator("text_color", "link_color", "background_color")
    @classmethod
    def validate_colors(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_color(value)

    def apply_to(self, base: DisplaySettings) -> DisplaySettings:
        present = self.model_dump(exclude_none=True)
        return base.model_copy(update=present)


def decode_persisted_settings(blob: bytes | None) -> PersistedSettings | None:
    """Decode stored settings, dropping fields that fail validation.

    Returns None when nothing usable is stored.
    """

    if not blob:
        return None

    try:
        raw = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("Ignoring stored settings that are not valid JSON")
        return None

    if not isinstance(raw, dict):
        logger.warning("Ignoring stored settings that are not a JSON object")
        return None

    try:
        return PersistedSettings.model_validate(raw)
    except ValidationError as exc:
        invalid = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        logger.warning("Dropping invalid stored settings fields: %s", ", ".join(sorted(invalid)))

    cleaned = {key: value for key, value in raw.items() if key not in invalid}
    try:
        return PersistedSettings.model_validate(cleaned)
    except ValidationError:
        return None


class ControllerConfig(BaseModel):
    """Tunables for the export controller and its runtime."""

    render_debounce_seconds: float = Field(default=0.01, ge=0)
    placeholder_width: int = Field(default=10, ge=1)
    settings_key: str = "settings"
