"""Error taxonomy shared by the export core and its collaborators."""

from __future__ import annotations

UNKNOWN_ERROR_MESSAGE = "Unknown Error"


class TootSnapError(RuntimeError):
    """Base error; subclasses declare a user-facing message."""

    user_message: str | None = None


class NotAPostError(TootSnapError):
    """Raised when a URL or server response does not look like a post."""

    user_message = "This link doesn't look like a Mastodon post."


class NotAuthenticatedError(TootSnapError):
    """Raised when the server hides the post from anonymous requests."""

    user_message = "This server requires you to log in before viewing posts."


class LinkUnparseableError(TootSnapError):
    """Raised when a post URL is malformed."""

    user_message = "This link couldn't be understood."


class PostFetchError(TootSnapError):
    """Raised when the server could not be reached."""

    user_message = "Couldn't reach the server. Check your connection and try again."


class RenderUnavailableError(TootSnapError):
    """Raised when there is no post to render or the render backend fails."""

    user_message = "Nothing to render yet."


class ImageLoadError(TootSnapError):
    """Raised when an image cannot be downloaded or decoded."""


class ContentFormattingError(TootSnapError):
    """Raised when post markup cannot be turned into rich text."""


class AuthenticationError(TootSnapError):
    """Raised when an OAuth token could not be obtained."""

    user_message = "Logging in failed. Check the server name and try again."


class ExportError(TootSnapError):
    """Raised when a one-shot export produced no image."""


def describe_error(error: BaseException) -> str:
    """Return the error's declared user-facing message, or a generic fallback."""

    message = getattr(error, "user_message", None)
    if isinstance(message, str) and message:
        return message
    return UNKNOWN_ERROR_MESSAGE
