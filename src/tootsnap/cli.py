"""Typer CLI entrypoint for tootsnap."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from pydantic import ValidationError

from tootsnap.actions import (
    BackgroundColorChanged,
    ImageStyleChanged,
    LinkColorChanged,
    LinkStyleChanged,
    LoadSettings,
    ResetSettings,
    RoundCornersToggled,
    SettingsAction,
    ShowDateToggled,
    TextColorChanged,
)
from tootsnap.auth import clear_token
from tootsnap.config import DisplaySettings, ImageStyle, LinkStyle
from tootsnap.errors import LinkUnparseableError, describe_error
from tootsnap.export import build_environment, export_post, http_client
from tootsnap.input import normalize_host, parse_post_url
from tootsnap.settings import SettingsReducer, apply_settings_actions
from tootsnap.storage import FileSettingsStore

app = typer.Typer(help="Export a Mastodon post as a styled, shareable image.", no_args_is_help=True)
settings_app = typer.Typer(help="Show or change the display settings used for exports.", no_args_is_help=True)
app.add_typer(settings_app, name="settings")

DEFAULT_CONFIG_DIR = Path(typer.get_app_dir("tootsnap"))


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr.")) -> None:
    """tootsnap command group."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _prompt_for_code(authorize_url: str) -> str:
    typer.echo("Open this URL in a browser and authorize tootsnap:")
    typer.echo(authorize_url)
    return typer.prompt("Authorization code")


@app.command()
def export(
    url: str = typer.Argument(..., help="Link to a Mastodon post."),
    output: Path = typer.Option(..., dir_okay=False),
    include_ancestors: bool = typer.Option(False, help="Show the posts this one replies to."),
    include_replies: bool = typer.Option(False, help="Show the replies to this post."),
    login: bool = typer.Option(False, help="Log in and retry when the server requires it."),
    config_dir: Path = typer.Option(DEFAULT_CONFIG_DIR, file_okay=False),
    timeout_seconds: int = typer.Option(30, min=5, max=180),
) -> None:
    """Render a post and write it as an SVG image."""

    try:
        parse_post_url(url)
    except LinkUnparseableError as exc:
        typer.echo(f"{describe_error(exc)} {exc}", err=True)
        raise typer.Exit(code=2) from exc

    try:
        report = export_post(
            url,
            output,
            config_dir=config_dir,
            timeout_seconds=timeout_seconds,
            include_ancestors=include_ancestors,
            include_replies=include_replies,
            login=login,
            prompt=_prompt_for_code,
        )
    except Exception as exc:
        typer.echo(f"Export failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Exported {report.posts_included} post(s) with {report.images_loaded} image(s).")
    typer.echo(f"Output: {report.output}")
    if report.share_caption:
        typer.echo(f"Caption: {report.share_caption}")


@app.command()
def login(
    host: str = typer.Argument(..., help="Server name, e.g. mastodon.social."),
    config_dir: Path = typer.Option(DEFAULT_CONFIG_DIR, file_okay=False),
    timeout_seconds: int = typer.Option(30, min=5, max=180),
) -> None:
    """Authorize tootsnap on a server and store the access token."""

    try:
        host = normalize_host(host)
    except LinkUnparseableError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc

    async def _login() -> str:
        async with http_client(timeout_seconds) as client:
            environment = build_environment(client, config_dir, _prompt_for_code)
            return await environment.authenticator.obtain_token(host)

    try:
        asyncio.run(_login())
    except Exception as exc:
        typer.echo(f"Login failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Logged in to {host}.")


@app.command()
def logout(config_dir: Path = typer.Option(DEFAULT_CONFIG_DIR, file_okay=False)) -> None:
    """Forget the stored access token."""

    clear_token(FileSettingsStore(config_dir))
    typer.echo("Logged out.")


def _settings_reducer(config_dir: Path) -> SettingsReducer:
    return SettingsReducer(FileSettingsStore(config_dir))


def _echo_settings(settings: DisplaySettings) -> None:
    for name, value in settings.model_dump(mode="json").items():
        typer.echo(f"{name}: {value}")


@settings_app.command("show")
def show_settings(config_dir: Path = typer.Option(DEFAULT_CONFIG_DIR, file_okay=False)) -> None:
    """Print the stored display settings."""

    _echo_settings(apply_settings_actions(_settings_reducer(config_dir), DisplaySettings(), [LoadSettings()]))


@settings_app.command("set")
def set_settings(
    text_color: str | None = typer.Option(None, help="Body text colour as #RRGGBB."),
    link_color: str | None = typer.Option(None, help="Link colour as #RRGGBB."),
    background_color: str | None = typer.Option(None, help="Background colour as #RRGGBB."),
    show_date: bool | None = typer.Option(None, "--show-date/--hide-date"),
    round_corners: bool | None = typer.Option(None, "--round-corners/--square-corners"),
    image_style: ImageStyle | None = typer.Option(None),
    link_style: LinkStyle | None = typer.Option(None),
    config_dir: Path = typer.Option(DEFAULT_CONFIG_DIR, file_okay=False),
) -> None:
    """Change one or more display settings."""

    reducer = _settings_reducer(config_dir)
    current = apply_settings_actions(reducer, DisplaySettings(), [LoadSettings()])

    changes = {
        "text_color": text_color,
        "link_color": link_color,
        "background_color": background_color,
        "show_date": show_date,
        "round_corners": round_corners,
        "image_style": image_style,
        "link_style": link_style,
    }
    changes = {name: value for name, value in changes.items() if value is not None}
    if not changes:
        typer.echo("Nothing to change.", err=True)
        raise typer.Exit(code=2)

    try:
        DisplaySettings.model_validate({**current.model_dump(), **changes})
    except ValidationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc

    actions: list[SettingsAction] = []
    if text_color is not None:
        actions.append(TextColorChanged(text_color))
    if link_color is not None:
        actions.append(LinkColorChanged(link_color))
    if background_color is not None:
        actions.append(BackgroundColorChanged(background_color))
    if show_date is not None:
        actions.append(ShowDateToggled(show_date))
    if round_corners is not None:
        actions.append(RoundCornersToggled(round_corners))
    if image_style is not None:
        actions.append(ImageStyleChanged(image_style))
    if link_style is not None:
        actions.append(LinkStyleChanged(link_style))

    _echo_settings(apply_settings_actions(reducer, current, actions))


@settings_app.command("reset")
def reset_settings(config_dir: Path = typer.Option(DEFAULT_CONFIG_DIR, file_okay=False)) -> None:
    """Restore the default display settings."""

    _echo_settings(apply_settings_actions(_settings_reducer(config_dir), DisplaySettings(), [ResetSettings()]))
