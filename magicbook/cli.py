"""Command-line interface for Magicbook.

Responsibilities:
- Expose user-facing commands for reading stories, chatting, and credentials.
- Convert CLI arguments into `StorybookConfig` and an authorized story session.
- Drive the interactive page loop on top of `StorySession`.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Awaitable, Callable

import typer

from .cli_rendering import (
    READER_HELP,
    echo_chat_message,
    echo_page,
    echo_suggestions,
    exit_with_command_error,
    illustration_notice,
)
from .cli_runtime import (
    authorize_command,
    build_capability_gate,
    create_audio_output,
    load_command_config,
)
from .companion.chat import CompanionChat
from .credentials import create_credential_store
from .errors import AuthError, SessionStageError, StoryCreationError
from .io.storage import ArtifactStore
from .llm.asset_provider import GeminiAssetProvider
from .llm.prompts import STORY_SUGGESTIONS
from .models.datatypes import IllustrationStatus, Page
from .parsing import normalize_optional_string
from .story.playback import PlaybackState
from .story.session import StorySession
from .telemetry.logger import SessionLogger

app = typer.Typer(
    name="magicbook",
    no_args_is_help=True,
    help="Magicbook CLI: illustrated, narrated children's stories in the terminal.",
)

LineReader = Callable[[str], Awaitable[str | None]]


async def _read_line(label: str) -> str | None:
    """Read one line of input without blocking the event loop; `None` on end of input."""

    try:
        return await asyncio.to_thread(typer.prompt, label, default="", show_default=False)
    except (typer.Abort, EOFError):
        return None


class StoryReader:
    """Interactive page loop over one `StorySession`."""

    def __init__(self, session: StorySession, store: ArtifactStore, read_line: LineReader) -> None:
        """Initialize the reader and subscribe to narration state changes."""

        self._session = session
        self._store = store
        self._read_line = read_line
        self._unsubscribe_document: Callable[[], None] | None = None
        session.playback.subscribe(self._on_playback_changed)

    async def run(self, prompt: str | None) -> None:
        """Ask for prompts and read stories until the user quits."""

        while True:
            if prompt is None:
                echo_suggestions(STORY_SUGGESTIONS)
                prompt = await self._read_line("What story shall we create?")
                if prompt is None or prompt.strip().lower() == "q":
                    return
                prompt = self._expand_suggestion(prompt)
            if not prompt.strip():
                prompt = None
                continue

            typer.echo("Conjuring your story...")
            try:
                await self._session.start_story(prompt)
            except StoryCreationError as exc:
                typer.secho(exc.notice, fg=typer.colors.RED)
                prompt = None
                continue

            self._watch_document()
            if not await self._read_pages():
                return
            prompt = None

    async def _read_pages(self) -> bool:
        """Run the page loop; return `False` on quit and `True` on home."""

        self._echo_current_page()
        while True:
            line = await self._read_line("Command (? for help)")
            if line is None:
                return False
            command, _, argument = line.strip().partition(" ")
            command = command.lower()
            if command == "q":
                return False
            if command == "h":
                self._session.reset()
                return True
            if command == "n":
                if self._session.next_page():
                    self._echo_current_page()
                else:
                    typer.echo("This is the last page.")
            elif command == "p":
                if self._session.previous_page():
                    self._echo_current_page()
                else:
                    typer.echo("This is the first page.")
            elif command == "r":
                self._session.toggle_narration()
            elif command == "t":
                if not self._session.retry_illustration():
                    typer.echo("Nothing to retry on this page.")
            elif command == "k":
                await self._update_key()
            elif command == "c":
                await self._chat(argument)
            else:
                typer.echo(READER_HELP)

    async def _update_key(self) -> None:
        """Run re-authorization without blocking illustration fetches."""

        try:
            capability = await self._session.reauthorize_async()
        except AuthError as exc:
            typer.secho(f"Key update failed: {exc}", fg=typer.colors.RED)
            return
        typer.echo(f"Key updated (source: {capability.source}). Revisit the page to try again.")

    async def _chat(self, text: str) -> None:
        """Send one message to the companion and print the reply."""

        reply = await self._session.chat.send(text)
        if reply is None:
            typer.echo("Type a message after `c`, for example: c why is the sky blue?")
            return
        echo_chat_message(reply)

    def _watch_document(self) -> None:
        """Subscribe to page updates of the newly opened story."""

        if self._unsubscribe_document is not None:
            self._unsubscribe_document()
        self._unsubscribe_document = self._session.document.subscribe(self._on_page_changed)

    def _on_page_changed(self, index: int, page: Page) -> None:
        """Export ready illustrations and announce failures of the viewed page."""

        if not self._session.has_story:
            return
        orchestrator = self._session.orchestrator
        if page.status is IllustrationStatus.READY and page.illustration is not None:
            try:
                path = self._store.save_illustration(
                    orchestrator.document.story.id, index, page.illustration
                )
            except OSError as exc:
                typer.secho(f"Could not save illustration: {exc}", fg=typer.colors.YELLOW)
                return
            typer.echo(f"Illustration for page {index + 1} saved: {path}")
        elif page.status is IllustrationStatus.FAILED and index == orchestrator.current_index:
            typer.secho(illustration_notice(page), fg=typer.colors.YELLOW)
            if orchestrator.needs_reauthorization:
                typer.echo("Press k to select a different key.")

    def _on_playback_changed(self, state: PlaybackState) -> None:
        """Announce narration state changes."""

        if state is PlaybackState.PLAYING:
            typer.echo("Reading aloud. Press r to stop.")
        elif state is PlaybackState.IDLE and self._session.playback.last_failure:
            typer.secho(self._session.playback.last_failure, fg=typer.colors.YELLOW)

    def _echo_current_page(self) -> None:
        """Print the viewed page."""

        orchestrator = self._session.orchestrator
        echo_page(orchestrator.document.story, orchestrator.current_index)

    @staticmethod
    def _expand_suggestion(prompt: str) -> str:
        """Map a suggestion number to its text."""

        token = prompt.strip()
        if token.isdigit() and 1 <= int(token) <= len(STORY_SUGGESTIONS):
            return STORY_SUGGESTIONS[int(token) - 1]
        return prompt


async def _run_reader(session: StorySession, store: ArtifactStore, prompt: str | None) -> None:
    """Run the interactive reader and release the session afterwards."""

    reader = StoryReader(session, store, _read_line)
    try:
        await reader.run(prompt)
    finally:
        session.close()


async def _run_chat(chat: CompanionChat) -> None:
    """Run the companion chat REPL until an empty line or `q`."""

    for message in chat.transcript:
        echo_chat_message(message)
    while True:
        line = await _read_line("You")
        if line is None or not line.strip() or line.strip().lower() == "q":
            return
        reply = await chat.send(line)
        if reply is not None:
            echo_chat_message(reply)


ApiKeyOption = Annotated[
    str | None,
    typer.Option("--api-key", help="Gemini API key for this run (not stored unless prompted)."),
]
PromptApiKeyOption = Annotated[
    bool,
    typer.Option("--prompt-api-key", help="Prompt for the API key with hidden input."),
]
StoreApiKeyOption = Annotated[
    bool,
    typer.Option(
        "--store-api-key/--no-store-api-key",
        help="Persist a prompted API key in secure credential storage.",
    ),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to a YAML config file."),
]


@app.command("read")
def read_command(
    prompt: Annotated[
        str | None, typer.Argument(help="Story idea; asked interactively when omitted.")
    ] = None,
    quality: Annotated[
        str | None, typer.Option("--quality", help="Illustration quality: 1K, 2K, or 4K.")
    ] = None,
    config_file: ConfigOption = None,
    out: Annotated[
        Path | None, typer.Option("--out", help="Directory for illustrations and narration.")
    ] = None,
    api_key: ApiKeyOption = None,
    prompt_api_key: PromptApiKeyOption = False,
    store_api_key: StoreApiKeyOption = True,
    audio_player: Annotated[
        str | None,
        typer.Option("--audio-player", help="`ffplay` to play narration, `file` to save WAVs."),
    ] = None,
) -> None:
    """Create a story from a prompt and read it page by page."""

    try:
        config = load_command_config(config_file, out, quality, audio_player)
        logger = SessionLogger(level="WARNING")
        gate = build_capability_gate(api_key, store_api_key, config, logger=logger)
        capability = authorize_command(gate, prompt_api_key)
        provider = GeminiAssetProvider(capability, config.resolved_provider_runtime())
        session = StorySession(
            capability,
            provider,
            create_audio_output(config),
            gate=gate,
            quality=config.image_quality,
            logger=logger,
            sample_rate=config.narration_sample_rate,
        )
    except Exception as exc:
        exit_with_command_error("read", exc)

    typer.echo(f"Output directory: {config.output_dir}")
    typer.echo(READER_HELP)
    try:
        asyncio.run(_run_reader(session, ArtifactStore(config.output_dir), prompt))
    except Exception as exc:
        exit_with_command_error("read", exc)


@app.command("chat")
def chat_command(
    config_file: ConfigOption = None,
    api_key: ApiKeyOption = None,
    prompt_api_key: PromptApiKeyOption = False,
    store_api_key: StoreApiKeyOption = True,
) -> None:
    """Talk with the Magic Companion."""

    try:
        config = load_command_config(config_file)
        gate = build_capability_gate(api_key, store_api_key, config)
        capability = authorize_command(gate, prompt_api_key)
        provider = GeminiAssetProvider(capability, config.resolved_provider_runtime())
    except Exception as exc:
        exit_with_command_error("chat", exc)

    asyncio.run(_run_chat(CompanionChat(provider)))


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage the securely stored Gemini API key."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            SessionStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "Gemini API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                SessionStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                SessionStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    has_stored_key = credential_store.get_api_key() is not None
    status = "present" if has_stored_key else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored Gemini API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
