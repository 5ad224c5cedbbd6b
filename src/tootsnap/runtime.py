"""Asyncio runtime that drives the export controller and executes its effects."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable

from tootsnap.actions import (
    Action,
    ContextFetchCompleted,
    Failure,
    ImageFetchCompleted,
    ImageLoadResponse,
    LoginCompleted,
    PostFetchCompleted,
    RenderCompleted,
    Success,
)
from tootsnap.controller import ExportController
from tootsnap.effects import (
    CancelRender,
    ClearToken,
    Dispatch,
    Effect,
    FetchContext,
    FetchImage,
    FetchPost,
    ObtainToken,
    Render,
    WriteSettings,
)
from tootsnap.media import ImageKey
from tootsnap.state import ExportState

logger = logging.getLogger(__name__)


class Store:
    """Holds the current ExportState and processes actions one at a time.

    ``send`` must be called from inside a running event loop. Each action is
    reduced and its effects started before the next queued action is looked
    at; ``Dispatch`` follow-ups jump ahead of anything an effect completes
    later.
    """

    def __init__(self, controller: ExportController, state: ExportState | None = None) -> None:
        self.controller = controller
        self.state = state or ExportState()
        self.history: list[Action] = []
        self._queue: deque[Action] = deque()
        self._draining = False
        self._tasks: set[asyncio.Task] = set()
        self._pending_renders: dict[str, asyncio.Task] = {}
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tootsnap-render")

    @property
    def environment(self):
        return self.controller.environment

    def send(self, action: Action) -> None:
        self._queue.append(action)
        if self._draining:
            return

        self._draining = True
        try:
            while self._queue:
                self._process(self._queue.popleft())
        finally:
            self._draining = False

    def _process(self, action: Action) -> None:
        logger.debug("Processing %s", type(action).__name__)
        self.state, effects = self.controller.reduce(self.state, action)
        self.history.append(action)
        for effect in effects:
            self._execute(effect)

    def _execute(self, effect: Effect) -> None:
        if isinstance(effect, Dispatch):
            self._queue.append(effect.action)
        elif isinstance(effect, FetchPost):
            self._spawn(self._complete(self.environment.fetcher.fetch_post(effect.url, effect.auth_token), PostFetchCompleted))
        elif isinstance(effect, FetchContext):
            self._spawn(
                self._complete(self.environment.fetcher.fetch_context(effect.url, effect.auth_token), ContextFetchCompleted)
            )
        elif isinstance(effect, FetchImage):
            self._spawn(self._complete(self._load_image(effect.key), ImageFetchCompleted))
        elif isinstance(effect, WriteSettings):
            try:
                self.environment.settings_store.write_blob(effect.key, effect.blob)
            except OSError as exc:
                logger.warning("Could not persist settings: %s", exc)
        elif isinstance(effect, Render):
            self._schedule_render(effect)
        elif isinstance(effect, CancelRender):
            self._cancel_pending_render(effect.effect_id)
        elif isinstance(effect, ObtainToken):
            self._spawn(self._complete(self.environment.authenticator.obtain_token(effect.host), LoginCompleted))
        elif isinstance(effect, ClearToken):
            self.environment.authenticator.logout()
        else:
            logger.warning("Ignoring unknown effect %r", effect)

    def _spawn(self, coroutine: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _complete(self, call: Awaitable[Any], completion: Callable[[Any], Action]) -> None:
        try:
            value = await call
        except Exception as exc:
            logger.debug("%s failed: %s", completion.__name__, exc)
            self.send(completion(Failure(exc)))
            return
        self.send(completion(Success(value)))

    async def _load_image(self, key: ImageKey) -> ImageLoadResponse:
        image = await self.environment.image_loader.load_image(key.url)
        return ImageLoadResponse(key=key, image=image)

    def _cancel_pending_render(self, effect_id: str) -> None:
        pending = self._pending_renders.pop(effect_id, None)
        if pending is not None:
            pending.cancel()

    def _schedule_render(self, effect: Render) -> None:
        self._cancel_pending_render(effect.effect_id)
        self._pending_renders[effect.effect_id] = self._spawn(self._render(effect))

    async def _render(self, effect: Render) -> None:
        await asyncio.sleep(effect.debounce_seconds)

        # Past the quiet period: from here on a newer schedule must not cancel us.
        if self._pending_renders.get(effect.effect_id) is asyncio.current_task():
            del self._pending_renders[effect.effect_id]

        loop = asyncio.get_running_loop()
        render = loop.run_in_executor(self._executor, self.environment.renderer.render, effect.snapshot)
        await self._complete(render, RenderCompleted)

    async def settle(self) -> None:
        """Wait until every effect, including pending renders, has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._executor.shutdown(wait=True)
