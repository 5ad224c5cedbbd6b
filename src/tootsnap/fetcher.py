"""Fetching posts and their conversation context from a Mastodon-compatible server."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx
from dateutil.parser import isoparse
from pydantic import ValidationError

from tootsnap.errors import NotAPostError, NotAuthenticatedError, PostFetchError
from tootsnap.input import parse_post_url
from tootsnap.models import Author, Card, Context, MediaAttachment, MediaType, Post

logger = logging.getLogger(__name__)

_AUTH_STATUSES = {401, 404}


class PostFetcher(Protocol):
    async def fetch_post(self, url: str, auth_token: str | None = None) -> Post: ...

    async def fetch_context(self, url: str, auth_token: str | None = None) -> Context: ...


def normalize_handle(acct: str, host: str) -> str:
    """Return ``@user@host``; local accounts come back from the server without a host."""

    handle = acct.strip().lstrip("@")
    if "@" not in handle:
        handle = f"{handle}@{host}"
    return f"@{handle}"


def _to_datetime(raw_timestamp: str | None) -> datetime:
    if not raw_timestamp:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    try:
        return isoparse(raw_timestamp)
    except ValueError:
        return datetime.fromtimestamp(0, tz=timezone.utc)


def _dimensions(meta: Any) -> tuple[int, int]:
    if not isinstance(meta, dict):
        return 0, 0
    for variant in ("original", "small"):
        candidate = meta.get(variant)
        if isinstance(candidate, dict) and candidate.get("width") and candidate.get("height"):
            return int(candidate["width"]), int(candidate["height"])
    return 0, 0


def _parse_attachment(payload: dict[str, Any]) -> MediaAttachment:
    width, height = _dimensions(payload.get("meta"))
    return MediaAttachment(
        id=str(payload.get("id") or ""),
        type=MediaType(payload.get("type") or "unknown"),
        source_url=payload.get("url") or payload.get("remote_url") or "",
        preview_url=payload.get("preview_url") or "",
        width=width,
        height=height,
        perceptual_hash=payload.get("blurhash"),
    )


def _parse_card(payload: Any) -> Card | None:
    if not isinstance(payload, dict) or not payload.get("url"):
        return None
    return Card(
        title=payload.get("title") or payload["url"],
        description=payload.get("description") or None,
        link_url=payload["url"],
        preview_image_url=payload.get("image") or None,
        perceptual_hash=payload.get("blurhash"),
        width=int(payload.get("width") or 0),
        height=int(payload.get("height") or 0),
    )


def parse_status(payload: Any, host: str) -> Post:
    """Build a Post from a ``/api/v1/statuses/:id`` payload."""

    if not isinstance(payload, dict):
        raise NotAPostError("Status payload is not a JSON object")

    try:
        account = payload["account"]
        author = Author(
            username=normalize_handle(account.get("acct") or account["username"], host),
            display_name=account.get("display_name") or account["username"],
            avatar_url=account.get("avatar_static") or account["avatar"],
        )
        return Post(
            id=str(payload["id"]),
            url=payload.get("url") or payload["uri"],
            created_at=_to_datetime(payload.get("created_at")),
            content=payload.get("content") or "",
            author=author,
            media_attachments=[_parse_attachment(item) for item in payload.get("media_attachments") or []],
            card=_parse_card(payload.get("card")),
            in_reply_to_id=payload.get("in_reply_to_id"),
        )
    except (KeyError, TypeError, AttributeError, ValidationError) as exc:
        raise NotAPostError(f"Status payload is missing required fields: {exc}") from exc


def parse_context(payload: Any, host: str) -> Context:
    """Build a Context from a ``/api/v1/statuses/:id/context`` payload."""

    if not isinstance(payload, dict):
        raise NotAPostError("Context payload is not a JSON object")
    return Context(
        ancestors=[parse_status(item, host) for item in payload.get("ancestors") or []],
        descendants=[parse_status(item, host) for item in payload.get("descendants") or []],
    )


class MastodonPostFetcher:
    """PostFetcher backed by the Mastodon REST API."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _get_json(self, url: str, auth_token: str | None) -> Any:
        headers = {"Accept": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise PostFetchError(f"Request to '{url}' failed: {exc}") from exc

        if response.status_code in _AUTH_STATUSES and auth_token is None:
            raise NotAuthenticatedError(f"'{url}' returned {response.status_code} without a token")
        if response.is_error:
            raise NotAPostError(f"'{url}' returned {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise NotAPostError(f"'{url}' did not return JSON") from exc

    async def fetch_post(self, url: str, auth_token: str | None = None) -> Post:
        locator = parse_post_url(url)
        logger.debug("Fetching status %s from %s", locator.status_id, locator.host)
        payload = await self._get_json(locator.status_url, auth_token)
        return parse_status(payload, locator.host)

    async def fetch_context(self, url: str, auth_token: str | None = None) -> Context:
        locator = parse_post_url(url)
        logger.debug("Fetching context for status %s from %s", locator.status_id, locator.host)
        payload = await self._get_json(locator.context_url, auth_token)
        return parse_context(payload, locator.host)
