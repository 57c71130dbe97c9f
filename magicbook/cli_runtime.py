"""CLI runtime resolution helpers.

This module isolates the API-key prompt flow, capability gate assembly,
config loading, and audio backend selection from the command wiring layer.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Mapping

import typer

from .audio.output import AudioOutput, FfplayAudioOutput, WavExportAudioOutput
from .auth import AuthorizedCapability, CapabilityGate, CredentialStoreProtocol
from .config import ConfigLoader, StorybookConfig
from .credentials import create_credential_store
from .errors import AuthError, SessionStageError
from .io.storage import ArtifactStore
from .models.datatypes import QualityTier
from .parsing import normalize_optional_string
from .telemetry.logger import SessionLogger


def prompt_for_api_key() -> str | None:
    """Ask for a Gemini API key with hidden input."""

    return normalize_optional_string(
        typer.prompt(
            "Gemini API key (hidden input)",
            default="",
            hide_input=True,
            show_default=False,
        )
    )


def load_command_config(
    config_file: Path | None,
    out: Path | None = None,
    quality: str | None = None,
    audio_player: str | None = None,
    env: Mapping[str, str] | None = None,
) -> StorybookConfig:
    """Resolve effective command config from YAML or environment plus CLI overrides."""

    try:
        config = (
            ConfigLoader.from_yaml(config_file)
            if config_file is not None
            else ConfigLoader.from_env(os.environ if env is None else env)
        )
    except FileNotFoundError as exc:
        raise SessionStageError(
            stage="config",
            detail=f"Config file not found: `{config_file}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise SessionStageError(
            stage="config",
            detail=f"Invalid configuration: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc

    if out is not None:
        config.output_dir = out
    if quality is not None:
        try:
            config.image_quality = QualityTier.parse(quality)
        except ValueError as exc:
            raise SessionStageError(
                stage="config",
                detail=str(exc),
                hint="Use `--quality 1K`, `--quality 2K`, or `--quality 4K`.",
            ) from exc
    if audio_player is not None:
        config.audio_player = audio_player
    try:
        config.validate()
    except ValueError as exc:
        raise SessionStageError(stage="config", detail=str(exc)) from exc
    return config


def build_capability_gate(
    api_key: str | None,
    store_api_key: bool,
    config: StorybookConfig,
    env: Mapping[str, str] | None = None,
    credential_store_factory: Callable[[], CredentialStoreProtocol] | None = None,
    prompt: Callable[[], str | None] = prompt_for_api_key,
    logger: SessionLogger | None = None,
) -> CapabilityGate:
    """Assemble the capability gate from CLI, keyring, environment, and config key sources."""

    factory = credential_store_factory or create_credential_store
    return CapabilityGate(
        factory(),
        prompt,
        cli_api_key=api_key,
        env=os.environ if env is None else env,
        config_api_key=config.api_key,
        store_selected_key=store_api_key,
        logger=logger,
    )


def authorize_command(gate: CapabilityGate, prompt_api_key: bool) -> AuthorizedCapability:
    """Return an authorized capability, prompting when requested or when no key exists."""

    try:
        if prompt_api_key:
            return gate.request_capability_authorization()
        return gate.authorize()
    except AuthError as exc:
        raise SessionStageError(
            stage="auth",
            detail=str(exc),
            hint=(
                "Pass `--api-key`, set `GEMINI_API_KEY`, run `magicbook credentials "
                "--set-api-key`, or rerun with `--no-store-api-key` if no keyring "
                "backend is available."
            ),
        ) from exc


def create_audio_output(config: StorybookConfig) -> AudioOutput:
    """Create the narration backend selected by `audio_player`."""

    if config.audio_player == "file":
        return WavExportAudioOutput(ArtifactStore(config.output_dir))
    return FfplayAudioOutput()
