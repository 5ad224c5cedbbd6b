"""Export orchestration: wires live collaborators and drives one export to a file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

import httpx

from tootsnap import __version__
from tootsnap.actions import LoginRequested, Requested, ToggledPostVisibility
from tootsnap.auth import OAuthAuthenticator
from tootsnap.config import ControllerConfig, LinkStyle
from tootsnap.controller import Environment, ExportController
from tootsnap.errors import UNKNOWN_ERROR_MESSAGE, AuthenticationError, ExportError
from tootsnap.fetcher import MastodonPostFetcher
from tootsnap.input import parse_post_url
from tootsnap.media import BlurhashDecoder, HttpImageLoader, ImageKind
from tootsnap.models import ExportReport, Post
from tootsnap.renderer import SvgRenderer
from tootsnap.runtime import Store
from tootsnap.state import ExportState
from tootsnap.storage import FileSettingsStore

logger = logging.getLogger(__name__)

USER_AGENT = f"tootsnap/{__version__}"


def _no_prompt(authorize_url: str) -> str:
    raise AuthenticationError(f"Open {authorize_url} to authorize, then retry interactively")


def http_client(timeout_seconds: int) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout_seconds,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


def build_environment(
    client: httpx.AsyncClient,
    config_dir: Path,
    prompt: Callable[[str], str] = _no_prompt,
) -> Environment:
    store = FileSettingsStore(config_dir)
    return Environment(
        fetcher=MastodonPostFetcher(client),
        image_loader=HttpImageLoader(client),
        renderer=SvgRenderer(),
        settings_store=store,
        authenticator=OAuthAuthenticator(client, store, prompt),
        hash_decoder=BlurhashDecoder(),
    )


def _thread_posts(state: ExportState, include_ancestors: bool, include_replies: bool) -> list[Post]:
    if state.context is None:
        return []
    posts: list[Post] = []
    if include_ancestors:
        posts.extend(state.context.ancestors)
    if include_replies:
        posts.extend(state.context.descendants)
    return posts


async def run_export(
    store: Store,
    url: str,
    *,
    include_ancestors: bool = False,
    include_replies: bool = False,
    login: bool = False,
) -> ExportState:
    """Request a post, optionally log in and retry, then reveal the thread."""

    locator = parse_post_url(url)

    store.send(Requested(url))
    await store.settle()

    if store.state.post is None and store.state.authentication_required and login:
        logger.info("%s requires login, starting authorization", locator.host)
        store.send(LoginRequested(locator.host))
        await store.settle()

    if store.state.post is None:
        raise ExportError(store.state.error_message or UNKNOWN_ERROR_MESSAGE)

    for post in _thread_posts(store.state, include_ancestors, include_replies):
        if post.id not in store.state.visible_post_ids:
            store.send(ToggledPostVisibility(post))
    await store.settle()

    return store.state


def _output_path(output: Path) -> Path:
    return output if output.suffix.lower() == ".svg" else output.with_suffix(".svg")


def export_post(
    url: str,
    output: Path,
    *,
    config_dir: Path,
    timeout_seconds: int = 30,
    include_ancestors: bool = False,
    include_replies: bool = False,
    login: bool = False,
    prompt: Callable[[str], str] = _no_prompt,
    config: ControllerConfig | None = None,
) -> ExportReport:
    """Render a post, and optionally its thread, into an SVG image file."""

    async def _export() -> ExportState:
        async with http_client(timeout_seconds) as client:
            store = Store(ExportController(build_environment(client, config_dir, prompt), config))
            try:
                return await run_export(
                    store,
                    url,
                    include_ancestors=include_ancestors,
                    include_replies=include_replies,
                    login=login,
                )
            finally:
                store.close()

    state = asyncio.run(_export())
    if state.post is None:
        raise ExportError("The post could not be loaded")
    if state.rendered_image is None:
        raise ExportError("The post could not be rendered")

    output = _output_path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(state.rendered_image)
    logger.info("Wrote %s", output)

    share_caption = state.post.url if state.settings.link_style == LinkStyle.AFTER_IMAGE else None
    return ExportReport(
        url=url,
        post_id=state.post.id,
        output=output,
        posts_included=len(state.visible_posts),
        images_loaded=sum(1 for key in state.image_cache if key.kind == ImageKind.REMOTE),
        share_caption=share_caption,
    )
