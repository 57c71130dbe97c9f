"""Unit tests for CLI output and error rendering helpers."""

from __future__ import annotations

import pytest
import typer

from magicbook.cli_rendering import (
    PERMISSION_NOTICE,
    TRANSIENT_NOTICE,
    echo_page,
    exit_with_command_error,
    illustration_notice,
)
from magicbook.errors import SessionStageError
from magicbook.models.datatypes import (
    FailureKind,
    IllustrationAsset,
    IllustrationFailure,
    IllustrationStatus,
    Page,
)
from magicbook.story.document import StoryDocument
from tests.fakes import WHISTLING_ROBOT


def test_exit_with_command_error_renders_stage_error_with_hint(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print stage diagnostics and hint before exiting with code 1."""

    error = SessionStageError(
        stage="auth",
        detail="No API key entered.",
        hint="Pass `--api-key` or set `GEMINI_API_KEY`.",
    )

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("read", error)

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "read failed at stage `auth`: No API key entered." in captured.err
    assert "Hint: Pass `--api-key` or set `GEMINI_API_KEY`." in captured.err


def test_exit_with_command_error_renders_non_stage_fallback(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print fallback exception text for non-stage failures."""

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("chat", RuntimeError("unexpected"))

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "chat failed: unexpected" in captured.err


@pytest.mark.parametrize(
    ("page", "expected"),
    [
        (Page(text="t"), "No illustration yet."),
        (Page(text="t", status=IllustrationStatus.PENDING), "Painting the illustration..."),
        (
            Page(
                text="t",
                status=IllustrationStatus.READY,
                illustration=IllustrationAsset("image/png", b"x"),
            ),
            "Illustration ready.",
        ),
        (
            Page(
                text="t",
                status=IllustrationStatus.FAILED,
                failure=IllustrationFailure(FailureKind.PERMISSION_DENIED),
            ),
            PERMISSION_NOTICE,
        ),
        (
            Page(
                text="t",
                status=IllustrationStatus.FAILED,
                failure=IllustrationFailure(FailureKind.TRANSIENT),
            ),
            TRANSIENT_NOTICE,
        ),
    ],
)
def test_illustration_notice_per_status(page: Page, expected: str) -> None:
    """Each illustration state has a distinct notice."""

    assert illustration_notice(page) == expected


def test_echo_page_prints_position_and_text(capsys: pytest.CaptureFixture[str]) -> None:
    """Pages render with title, `Page n of m`, and text."""

    story = StoryDocument.from_skeleton(WHISTLING_ROBOT).story

    echo_page(story, 1)

    output = capsys.readouterr().out
    assert "The Whistling Robot" in output
    assert "Page 2 of 5" in output
    assert WHISTLING_ROBOT.page_texts[1] in output
