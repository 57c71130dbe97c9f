"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
story pages, illustration notices, and companion chat messages.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from .errors import SessionStageError
from .models.datatypes import ChatMessage, ChatRole, FailureKind, IllustrationStatus, Page, Story

PERMISSION_NOTICE = (
    "Magic key permission error! You might need to select a key from a paid GCP project."
)
TRANSIENT_NOTICE = "The magic brush slipped! Try moving to the next page and back."
READER_HELP = (
    "[n] next  [p] previous  [r] read aloud/stop  [t] try illustration again  "
    "[k] update key  [c <message>] chat  [h] home  [q] quit"
)


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, SessionStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def illustration_notice(page: Page) -> str:
    """Return the one-line illustration status shown under a page."""

    if page.status is IllustrationStatus.PENDING:
        return "Painting the illustration..."
    if page.status is IllustrationStatus.READY:
        return "Illustration ready."
    if page.status is IllustrationStatus.FAILED:
        if page.failure is not None and page.failure.kind is FailureKind.PERMISSION_DENIED:
            return PERMISSION_NOTICE
        return TRANSIENT_NOTICE
    return "No illustration yet."


def echo_page(story: Story, index: int) -> None:
    """Print the title, page position, text, and illustration status of one page."""

    page = story.pages[index]
    typer.secho(story.title, bold=True)
    typer.echo(f"Page {index + 1} of {len(story.pages)}")
    typer.echo(page.text)
    typer.echo(f"Illustration: {illustration_notice(page)}")


def echo_chat_message(message: ChatMessage) -> None:
    """Print one transcript entry with its speaker label."""

    speaker = "Companion" if message.role is ChatRole.ASSISTANT else "You"
    typer.echo(f"{speaker}: {message.text}")


def echo_suggestions(suggestions: tuple[str, ...]) -> None:
    """Print numbered story prompt suggestions."""

    typer.echo("Need an idea? Try one of these:")
    for number, suggestion in enumerate(suggestions, start=1):
        typer.echo(f"  {number}. {suggestion}")
