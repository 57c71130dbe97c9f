"""Shared pytest fixtures for the Magicbook test suite."""

from __future__ import annotations

import pytest

from tests.fakes import ScriptedAssetProvider


@pytest.fixture
def scripted_provider() -> ScriptedAssetProvider:
    """Provide an asset provider whose calls wait for the test to resolve them."""

    return ScriptedAssetProvider()
