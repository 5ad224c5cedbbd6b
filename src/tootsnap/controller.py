"""The export controller: core reducer plus the rerender policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tootsnap.actions import (
    Action,
    ContextFetchCompleted,
    Failure,
    ImageFetchCompleted,
    LoadSettings,
    LoginCompleted,
    LoginRequested,
    LogoutRequested,
    PostFetchCompleted,
    RenderCompleted,
    Requested,
    Rerequest,
    Settings,
    Success,
    ToggledPostVisibility,
)
from tootsnap.auth import Authenticator
from tootsnap.config import ControllerConfig
from tootsnap.content import RichText, attributed_content
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
)
from tootsnap.errors import ContentFormattingError, NotAuthenticatedError, describe_error
from tootsnap.fetcher import PostFetcher
from tootsnap.media import ImageKey, ImageKind, ImageLoader, PerceptualHashDecoder, placeholder_size
from tootsnap.models import Post
from tootsnap.renderer import Renderer
from tootsnap.settings import SettingsReducer
from tootsnap.state import ExportState
from tootsnap.storage import SettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Environment:
    """The collaborators the controller and its runtime depend on."""

    fetcher: PostFetcher
    image_loader: ImageLoader
    renderer: Renderer
    settings_store: SettingsStore
    authenticator: Authenticator
    hash_decoder: PerceptualHashDecoder


class ExportController:
    """Pure ``(state, action) -> (state, effects)`` reducer for one export screen."""

    def __init__(self, environment: Environment, config: ControllerConfig | None = None) -> None:
        self.environment = environment
        self.config = config or ControllerConfig()
        self.settings_reducer = SettingsReducer(environment.settings_store, key=self.config.settings_key)

    def reduce(self, state: ExportState, action: Action) -> tuple[ExportState, list[Effect]]:
        """Apply one action, then let the rerender policy look at the result."""

        state, effects = self._reduce(state, action)
        effects.extend(self.rerender_effects(state, action))
        return state, effects

    def _reduce(self, state: ExportState, action: Action) -> tuple[ExportState, list[Effect]]:
        if isinstance(action, Requested):
            return self._requested(state, action.url)

        if isinstance(action, Rerequest):
            if state.last_requested_url is None:
                return state, []
            return self._requested(state, state.last_requested_url)

        if isinstance(action, PostFetchCompleted):
            return self._post_fetch_completed(state, action)

        if isinstance(action, ContextFetchCompleted):
            if isinstance(action.result, Failure):
                logger.warning("Context fetch failed, showing post on its own: %s", action.result.error)
                return state, []
            context = action.result.value
            state = state.model_copy(update={"context": context})
            return self._process_posts(state, context.all_posts)

        if isinstance(action, ImageFetchCompleted):
            if isinstance(action.result, Failure):
                logger.warning("Image load failed: %s", action.result.error)
                return state, []
            response = action.result.value
            image_cache = {**state.image_cache, response.key: response.image}
            return state.model_copy(update={"image_cache": image_cache}), []

        if isinstance(action, ToggledPostVisibility):
            return self._toggled_visibility(state, action.post), []

        if isinstance(action, Settings):
            return self._settings(state, action)

        if isinstance(action, RenderCompleted):
            if isinstance(action.result, Success):
                return state.model_copy(update={"rendered_image": action.result.value}), []
            logger.warning("Render failed: %s", action.result.error)
            return state.model_copy(update={"rendered_image": None}), []

        if isinstance(action, LoginRequested):
            return state, [ObtainToken(action.host)]

        if isinstance(action, LoginCompleted):
            if isinstance(action.result, Success):
                return state, [Dispatch(Rerequest())]
            logger.warning("Login failed: %s", action.result.error)
            if state.post is None:
                return state.model_copy(update={"error_message": describe_error(action.result.error)}), []
            return state, []

        if isinstance(action, LogoutRequested):
            return state, [ClearToken()]

        logger.warning("Ignoring unknown action %r", action)
        return state, []

    def _requested(self, state: ExportState, url: str) -> tuple[ExportState, list[Effect]]:
        state = state.model_copy(
            update={
                "last_requested_url": url,
                "post": None,
                "context": None,
                "attributed_content": {},
                "error_message": None,
                "authentication_required": False,
                "rendered_image": None,
                "image_cache": {},
                "visible_post_ids": frozenset(),
            }
        )
        token = self.environment.authenticator.existing_token
        return state, [
            CancelRender(),
            Dispatch(Settings(LoadSettings())),
            FetchPost(url, token),
            FetchContext(url, token),
        ]

    def _post_fetch_completed(
        self, state: ExportState, action: PostFetchCompleted
    ) -> tuple[ExportState, list[Effect]]:
        if isinstance(action.result, Failure):
            error = action.result.error
            logger.warning("Post fetch failed: %s", error)
            return (
                state.model_copy(
                    update={
                        "post": None,
                        "error_message": describe_error(error),
                        "authentication_required": isinstance(error, NotAuthenticatedError),
                    }
                ),
                [],
            )

        post = action.result.value
        state = state.model_copy(
            update={
                "post": post,
                "visible_post_ids": state.visible_post_ids | {post.id},
                "error_message": None,
                "authentication_required": False,
            }
        )
        return self._process_posts(state, [post])

    def _process_posts(self, state: ExportState, posts: list[Post]) -> tuple[ExportState, list[Effect]]:
        """Format content, draw placeholders and request every image for the given posts."""

        attributed = dict(state.attributed_content)
        image_cache = dict(state.image_cache)
        effects: list[Effect] = []
        requested: set[str] = set()

        for post in posts:
            self._store_formatted(attributed, post, state.settings.link_color)

            for reference in post.image_references():
                if reference.perceptual_hash:
                    width, height = placeholder_size(reference, self.config.placeholder_width)
                    placeholder = self.environment.hash_decoder.decode(reference.perceptual_hash, width, height)
                    if placeholder is not None:
                        image_cache[ImageKey(reference.url, ImageKind.BLURHASH)] = placeholder

                if reference.url in requested:
                    continue
                requested.add(reference.url)
                effects.append(FetchImage(ImageKey(reference.url, ImageKind.REMOTE)))

        state = state.model_copy(update={"attributed_content": attributed, "image_cache": image_cache})
        return state, effects

    def _store_formatted(self, attributed: dict[str, RichText], post: Post, link_color: str) -> None:
        try:
            attributed[post.id] = attributed_content(post.content, link_color)
        except ContentFormattingError as exc:
            logger.debug("Falling back to raw content for post %s: %s", post.id, exc)
            attributed.pop(post.id, None)

    def _toggled_visibility(self, state: ExportState, post: Post) -> ExportState:
        if state.post is not None and post.id == state.post.id:
            return state
        if post.id in state.visible_post_ids:
            visible = state.visible_post_ids - {post.id}
        else:
            visible = state.visible_post_ids | {post.id}
        return state.model_copy(update={"visible_post_ids": visible})

    def _settings(self, state: ExportState, action: Settings) -> tuple[ExportState, list[Effect]]:
        previous_link_color = state.settings.link_color
        settings, settings_effects = self.settings_reducer.reduce(state.settings, action.action)
        state = state.model_copy(update={"settings": settings})

        effects: list[Effect] = [
            Dispatch(Settings(effect.action)) if isinstance(effect, Dispatch) else effect
            for effect in settings_effects
        ]

        if settings.link_color != previous_link_color and state.post is not None:
            attributed = dict(state.attributed_content)
            self._store_formatted(attributed, state.post, settings.link_color)
            state = state.model_copy(update={"attributed_content": attributed})

        return state, effects

    def rerender_effects(self, state: ExportState, action: Action) -> list[Effect]:
        """Decide whether the action changed what the composite shows."""

        if isinstance(action, ImageFetchCompleted):
            if not isinstance(action.result, Success):
                return []
            url = action.result.value.key.url
            if not state.is_image_visible(url):
                logger.debug("Skipping render for image of a hidden post: %s", url)
                return []
        elif isinstance(action, PostFetchCompleted):
            if not isinstance(action.result, Success):
                return []
        elif isinstance(action, Settings):
            if isinstance(action.action, LoadSettings):
                return []
        elif not isinstance(action, ToggledPostVisibility):
            return []

        return [Render(snapshot=state, debounce_seconds=self.config.render_debounce_seconds)]
