"""Post URL parsing utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from tootsnap.errors import LinkUnparseableError

_STATUS_ID_RE = re.compile(r"^[A-Za-z0-9]+$")


@dataclass(frozen=True)
class PostLocator:
    """Where a post lives: its server and its server-local id."""

    scheme: str
    host: str
    status_id: str

    def api_url(self, path: str) -> str:
        return f"{self.scheme}://{self.host}{path}"

    @property
    def status_url(self) -> str:
        return self.api_url(f"/api/v1/statuses/{self.status_id}")

    @property
    def context_url(self) -> str:
        return self.api_url(f"/api/v1/statuses/{self.status_id}/context")


def parse_post_url(url: str) -> PostLocator:
    """Extract host and status id from a Mastodon-style post URL.

    Accepts ``/@user/<id>``, ``/web/@user/<id>``, ``/@user@host/<id>`` and
    ``/users/<user>/statuses/<id>`` paths.
    """

    parsed = urlparse(url.strip())
    if parsed.scheme not in {"http", "https"}:
        raise LinkUnparseableError(f"Unsupported URL scheme in '{url}'")
    if not parsed.hostname:
        raise LinkUnparseableError(f"Missing host in '{url}'")

    parts = [part for part in parsed.path.split("/") if part]
    status_id: str | None = None
    for index, part in enumerate(parts):
        if index + 1 >= len(parts):
            break
        if part.startswith("@") or part == "statuses":
            status_id = parts[index + 1]

    if status_id is None:
        raise LinkUnparseableError(f"Could not find a status id in '{url}'")
    if not _STATUS_ID_RE.match(status_id):
        raise LinkUnparseableError(f"Status id is not valid in '{url}'")

    host = parsed.hostname.lower()
    if parsed.port is not None:
        host = f"{host}:{parsed.port}"
    return PostLocator(scheme=parsed.scheme, host=host, status_id=status_id)


def host_of(url: str) -> str:
    """Return the lower-cased host of a URL, or raise LinkUnparseableError."""

    parsed = urlparse(url.strip())
    if not parsed.hostname:
        raise LinkUnparseableError(f"Missing host in '{url}'")
    return parsed.hostname.lower()


def normalize_host(value: str) -> str:
    """Strip scheme and path from a user-typed server name."""

    cleaned = value.strip()
    cleaned = re.sub(r"^https?://", "", cleaned, flags=re.IGNORECASE)
    cleaned = cleaned.split("/", 1)[0]
    if not cleaned:
        raise LinkUnparseableError(f"Server name '{value}' is empty")
    return cleaned.lower()
