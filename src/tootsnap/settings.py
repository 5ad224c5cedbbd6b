"""Settings sub-reducer: display preferences plus their persistence."""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from pydantic import ValidationError

from tootsnap.actions import (
    FIELD_CHANGES,
    BackgroundColorChanged,
    ImageStyleChanged,
    LinkColorChanged,
    LinkStyleChanged,
    LoadSettings,
    ResetSettings,
    RoundCornersToggled,
    SaveSettings,
    SettingsAction,
    ShowDateToggled,
    TextColorChanged,
)
from tootsnap.config import DisplaySettings, decode_persisted_settings
from tootsnap.effects import Dispatch, Effect, WriteSettings
from tootsnap.storage import SettingsStore

logger = logging.getLogger(__name__)


class SettingsReducer:
    """Reduces SettingsAction values over DisplaySettings.

    Every field change is followed by a ``SaveSettings`` dispatch; ``LoadSettings``
    and ``SaveSettings`` never trigger further saves.
    """

    def __init__(self, store: SettingsStore, key: str = "settings") -> None:
        self.store = store
        self.key = key

    def reduce(self, state: DisplaySettings, action: SettingsAction) -> tuple[DisplaySettings, list[Effect]]:
        if isinstance(action, LoadSettings):
            persisted = decode_persisted_settings(self.store.read_blob(self.key))
            if persisted is None:
                return state, []
            return persisted.apply_to(DisplaySettings()), []

        if isinstance(action, SaveSettings):
            return state, [WriteSettings(key=self.key, blob=state.encode())]

        if isinstance(action, ResetSettings):
            return DisplaySettings(), [Dispatch(SaveSettings())]

        if isinstance(action, FIELD_CHANGES):
            return self._apply_change(state, action), [Dispatch(SaveSettings())]

        logger.warning("Ignoring unknown settings action %r", action)
        return state, []

    def _apply_change(self, state: DisplaySettings, action: SettingsAction) -> DisplaySettings:
        if isinstance(action, TextColorChanged):
            update = {"text_color": action.color}
        elif isinstance(action, LinkColorChanged):
            update = {"link_color": action.color}
        elif isinstance(action, BackgroundColorChanged):
            update = {"background_color": action.color}
        elif isinstance(action, ShowDateToggled):
            update = {"show_date": action.show}
        elif isinstance(action, RoundCornersToggled):
            update = {"round_corners": action.enabled}
        elif isinstance(action, ImageStyleChanged):
            update = {"image_style": action.style}
        elif isinstance(action, LinkStyleChanged):
            update = {"link_style": action.style}
        else:
            return state
        try:
            return DisplaySettings.model_validate({**state.model_dump(), **update})
        except ValidationError as exc:
            logger.warning("Ignoring invalid settings change %r: %s", action, exc)
            return state


def apply_settings_actions(
    reducer: SettingsReducer,
    state: DisplaySettings,
    actions: Iterable[SettingsAction],
) -> DisplaySettings:
    """Run settings actions to completion outside the export runtime.

    Follow-up dispatches are processed in order and writes go straight to the
    reducer's store.
    """

    queue: deque[SettingsAction] = deque(actions)
    while queue:
        state, effects = reducer.reduce(state, queue.popleft())
        for effect in effects:
            if isinstance(effect, Dispatch):
                queue.append(effect.action)
            elif isinstance(effect, WriteSettings):
                reducer.store.write_blob(effect.key, effect.blob)
    return state
