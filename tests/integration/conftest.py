"""Integration-test fixtures for deterministic provider and credential behavior."""

from __future__ import annotations

import os

import pytest

from tests.fakes import ImmediateAssetProvider, InMemoryCredentialStore


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Return an empty in-memory credential store."""

    return InMemoryCredentialStore()


@pytest.fixture
def asset_provider() -> ImmediateAssetProvider:
    """Return the provider handed to CLI commands."""

    return ImmediateAssetProvider()


@pytest.fixture(autouse=True)
def _isolate_cli_collaborators(
    monkeypatch: pytest.MonkeyPatch,
    credential_store: InMemoryCredentialStore,
    asset_provider: ImmediateAssetProvider,
) -> None:
    """Route CLI commands to in-memory credentials and the immediate provider."""

    for name in list(os.environ):
        if name.startswith("MAGICBOOK_") or name == "GEMINI_API_KEY":
            monkeypatch.delenv(name)
    monkeypatch.setattr("magicbook.cli.create_credential_store", lambda: credential_store)
    monkeypatch.setattr("magicbook.cli_runtime.create_credential_store", lambda: credential_store)
    monkeypatch.setattr(
        "magicbook.cli.GeminiAssetProvider",
        lambda capability, runtime=None: asset_provider,
    )
