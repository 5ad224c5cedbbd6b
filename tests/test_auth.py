import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from stubs import MemorySettingsStore

from tootsnap.auth import OAuthAuthenticator
from tootsnap.errors import AuthenticationError


def _handler(token_response: httpx.Response):
    requests: list[tuple[str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.url.path, json.loads(request.content)))
        if request.url.path == "/api/v1/apps":
            return httpx.Response(200, json={"client_id": "cid", "client_secret": "csecret"})
        if request.url.path == "/oauth/token":
            return token_response
        return httpx.Response(404)

    return handler, requests


@pytest.mark.anyio
async def test_obtain_token_registers_prompts_and_stores() -> None:
    handler, requests = _handler(httpx.Response(200, json={"access_token": "tok"}))
    prompted: list[str] = []

    def prompt(url: str) -> str:
        prompted.append(url)
        return " code-1 \n"

    store = MemorySettingsStore()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        authenticator = OAuthAuthenticator(client, store, prompt)
        assert authenticator.existing_token is None

        token = await authenticator.obtain_token("example.com")

    assert token == "tok"
    assert authenticator.existing_token == "tok"
    assert [path for path, _ in requests] == ["/api/v1/apps", "/oauth/token"]
    assert requests[1][1]["code"] == "code-1"
    assert requests[1][1]["client_secret"] == "csecret"
    query = parse_qs(urlparse(prompted[0]).query)
    assert query["client_id"] == ["cid"]
    assert query["response_type"] == ["code"]

    authenticator.logout()
    assert authenticator.existing_token is None


@pytest.mark.anyio
async def test_obtain_token_fails_without_access_token() -> None:
    handler, _ = _handler(httpx.Response(400, json={"error": "invalid_grant"}))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        authenticator = OAuthAuthenticator(client, MemorySettingsStore(), lambda url: "code")
        with pytest.raises(AuthenticationError):
            await authenticator.obtain_token("example.com")


@pytest.mark.anyio
async def test_obtain_token_fails_on_empty_code() -> None:
    handler, requests = _handler(httpx.Response(200, json={"access_token": "tok"}))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        authenticator = OAuthAuthenticator(client, MemorySettingsStore(), lambda url: "  ")
        with pytest.raises(AuthenticationError):
            await authenticator.obtain_token("example.com")

    assert [path for path, _ in requests] == ["/api/v1/apps"]
