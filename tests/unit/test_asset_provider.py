"""Unit tests for the Gemini asset provider boundary mapping."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from magicbook.auth import AuthorizedCapability
from magicbook.config import ProviderRuntimeConfig
from magicbook.errors import GenerationError, PermissionDenied
from magicbook.llm.asset_provider import GeminiAssetProvider, parse_story_skeleton
from magicbook.llm.gemini_client import GeminiProviderError
from magicbook.models.datatypes import ChatMessage, ChatRole, QualityTier


def _provider() -> GeminiAssetProvider:
    """Create a provider with default runtime settings."""

    return GeminiAssetProvider(AuthorizedCapability(api_key="key-1", source="cli"))


def test_parse_story_skeleton_accepts_four_to_six_pages() -> None:
    """Valid payloads are stripped and kept in order."""

    skeleton = parse_story_skeleton({"title": " Bolt ", "pages": ["a ", "b", " ", "c", "d"]})

    assert skeleton.title == "Bolt"
    assert skeleton.page_texts == ("a", "b", "c", "d")


@pytest.mark.parametrize(
    "payload",
    [
        {"title": "T", "pages": ["a", "b", "c"]},
        {"title": "T", "pages": ["a"] * 7},
        {"title": "", "pages": ["a", "b", "c", "d"]},
        {"title": "T", "pages": "a b c d"},
        ["not", "an", "object"],
    ],
)
def test_parse_story_skeleton_rejects_invalid_payloads(payload: Any) -> None:
    """Out-of-range or malformed skeletons are generation errors."""

    with pytest.raises(GenerationError):
        parse_story_skeleton(payload)


def test_illustration_permission_failure_maps_to_permission_denied(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Only `permission_denied` provider failures become `PermissionDenied`."""

    provider = _provider()
    calls: list[dict[str, Any]] = []

    def _denied(**kwargs: Any) -> tuple[str, bytes]:
        calls.append(kwargs)
        raise GeminiProviderError("denied", failure_kind="permission_denied", status_code=403)

    monkeypatch.setattr(provider._images, "generate_image", _denied)

    with pytest.raises(PermissionDenied):
        asyncio.run(provider.generate_illustration("Bolt beeps.", "Bolt", QualityTier.HIGH))
    assert calls[0]["model"] == ProviderRuntimeConfig().model_image_pro
    assert calls[0]["image_size"] == "4K"


def test_illustration_other_failure_maps_to_generation_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Quota and transport failures stay generic."""

    provider = _provider()

    def _quota(**kwargs: Any) -> tuple[str, bytes]:
        raise GeminiProviderError("quota", failure_kind="insufficient_quota", status_code=429)

    monkeypatch.setattr(provider._images, "generate_image", _quota)

    with pytest.raises(GenerationError):
        asyncio.run(provider.generate_illustration("Bolt beeps.", "Bolt", QualityTier.LOW))


def test_low_quality_uses_standard_model_without_size(monkeypatch: pytest.MonkeyPatch) -> None:
    """The `1K` tier uses the standard image model."""

    provider = _provider()
    calls: list[dict[str, Any]] = []

    def _image(**kwargs: Any) -> tuple[str, bytes]:
        calls.append(kwargs)
        return "image/png", b"png"

    monkeypatch.setattr(provider._images, "generate_image", _image)

    asset = asyncio.run(provider.generate_illustration("Bolt beeps.", "Bolt", QualityTier.LOW))

    assert asset.data == b"png"
    assert calls[0]["model"] == ProviderRuntimeConfig().model_image
    assert calls[0]["image_size"] is None
    assert '"Bolt"' in calls[0]["prompt"]


def test_companion_history_maps_assistant_to_model_role(monkeypatch: pytest.MonkeyPatch) -> None:
    """Chat history is replayed with Gemini role names, new message last."""

    provider = _provider()
    captured: dict[str, Any] = {}

    def _chat(**kwargs: Any) -> str:
        captured.update(kwargs)
        return "Hello!"

    monkeypatch.setattr(provider._text, "chat", _chat)
    history = [ChatMessage(ChatRole.ASSISTANT, "Hi"), ChatMessage(ChatRole.USER, "Yo")]

    reply = asyncio.run(provider.send_companion_message(history, "Why?"))

    assert reply == "Hello!"
    assert captured["turns"] == [("model", "Hi"), ("user", "Yo"), ("user", "Why?")]


def test_rebind_switches_api_key() -> None:
    """Re-authorization rebuilds every client with the new key."""

    provider = _provider()

    provider.rebind(AuthorizedCapability(api_key="key-2", source="prompt"))

    assert provider._text.api_key == "key-2"
    assert provider._images.api_key == "key-2"
    assert provider._speech.api_key == "key-2"


def test_skeleton_provider_failure_maps_to_generation_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Skeleton request failures are generation errors."""

    provider = _provider()

    def _fail(**kwargs: Any) -> Any:
        raise GeminiProviderError("down")

    monkeypatch.setattr(provider._text, "generate_json", _fail)

    with pytest.raises(GenerationError):
        asyncio.run(provider.generate_story_skeleton("robots"))
