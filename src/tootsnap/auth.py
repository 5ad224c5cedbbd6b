"""OAuth token acquisition for servers that hide posts from anonymous requests."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol
from urllib.parse import urlencode

import httpx

from tootsnap.errors import AuthenticationError
from tootsnap.storage import SettingsStore

logger = logging.getLogger(__name__)

CLIENT_NAME = "tootsnap"
REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"
SCOPE = "read:statuses"
TOKEN_KEY = "token"


def clear_token(store: SettingsStore) -> None:
    store.write_blob(TOKEN_KEY, b"")


class Authenticator(Protocol):
    @property
    def existing_token(self) -> str | None: ...

    async def obtain_token(self, host: str) -> str: ...

    def logout(self) -> None: ...


class OAuthAuthenticator:
    """Registers an app, asks the user for an authorization code and stores the token.

    ``prompt`` receives the authorization URL and returns the code the user
    pasted back; it is called off the event loop.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: SettingsStore,
        prompt: Callable[[str], str],
    ) -> None:
        self._client = client
        self._store = store
        self._prompt = prompt

    @property
    def existing_token(self) -> str | None:
        blob = self._store.read_blob(TOKEN_KEY)
        if not blob:
            return None
        return blob.decode("utf-8").strip() or None

    def logout(self) -> None:
        clear_token(self._store)

    async def _post_json(self, url: str, body: dict[str, str]) -> dict:
        try:
            response = await self._client.post(url, json=body)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AuthenticationError(f"OAuth request to '{url}' failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise AuthenticationError(f"OAuth response from '{url}' is not a JSON object")
        return payload

    async def obtain_token(self, host: str) -> str:
        apps = await self._post_json(
            f"https://{host}/api/v1/apps",
            {
                "client_name": CLIENT_NAME,
                "redirect_uris": REDIRECT_URI,
                "scopes": SCOPE,
            },
        )
        try:
            client_id = apps["client_id"]
            client_secret = apps["client_secret"]
        except KeyError as exc:
            raise AuthenticationError(f"App registration on {host} returned no {exc}") from exc

        query = urlencode(
            {
                "response_type": "code",
                "client_id": client_id,
                "redirect_uri": REDIRECT_URI,
                "scope": SCOPE,
            }
        )
        code = (await asyncio.to_thread(self._prompt, f"https://{host}/oauth/authorize?{query}")).strip()
        if not code:
            raise AuthenticationError("No authorization code was entered")

        token_payload = await self._post_json(
            f"https://{host}/oauth/token",
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": REDIRECT_URI,
                "scope": SCOPE,
            },
        )
        token = token_payload.get("access_token")
        if not isinstance(token, str) or not token:
            raise AuthenticationError(f"Token exchange on {host} returned no access token")

        self._store.write_blob(TOKEN_KEY, token.encode("utf-8"))
        logger.info("Stored OAuth token for %s", host)
        return token
