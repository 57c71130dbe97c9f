"""Asset provider interface and Gemini-backed implementation.

Responsibilities:
- Define the async collaborator contract consumed by the story core.
- Run blocking Gemini HTTP calls off the event loop.
- Map provider failures onto `GenerationError` and `PermissionDenied`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any, Protocol

from ..auth import AuthorizedCapability
from ..config import ProviderRuntimeConfig
from ..errors import GenerationError, PermissionDenied
from ..models.datatypes import (
    ChatMessage,
    ChatRole,
    IllustrationAsset,
    QualityTier,
    StorySkeleton,
)
from .gemini_client import (
    GeminiImageClient,
    GeminiProviderError,
    GeminiSpeechClient,
    GeminiTextClient,
)
from .prompts import PromptLibrary

MIN_STORY_PAGES = 4
MAX_STORY_PAGES = 6


class AssetProvider(Protocol):
    """Protocol for the generative service behind stories, pictures, voice, and chat."""

    async def generate_story_skeleton(self, prompt: str) -> StorySkeleton:
        """Return a title and 4-6 ordered page texts for a prompt."""

    async def generate_illustration(
        self, page_text: str, story_title: str, quality: QualityTier
    ) -> IllustrationAsset:
        """Return an illustration for one page."""

    async def synthesize_narration(self, page_text: str) -> bytes:
        """Return raw decodable narration audio for one page."""

    async def send_companion_message(
        self, history: Sequence[ChatMessage], new_message: str
    ) -> str:
        """Return the companion reply given the full transcript and a new message."""

    def rebind(self, capability: AuthorizedCapability) -> None:
        """Switch subsequent requests to a newly authorized capability."""


def parse_story_skeleton(
    payload: Any,
    *,
    min_pages: int = MIN_STORY_PAGES,
    max_pages: int = MAX_STORY_PAGES,
) -> StorySkeleton:
    """Validate a decoded `{"title", "pages"}` document into a `StorySkeleton`.

    Raises:
        GenerationError: If fields are missing, blank, or the page count is out of range.
    """

    if not isinstance(payload, dict):
        raise GenerationError("Story response is not a JSON object.")
    title = payload.get("title")
    pages = payload.get("pages")
    if not isinstance(title, str) or not title.strip():
        raise GenerationError("Story response has no title.")
    if not isinstance(pages, list) or not all(isinstance(page, str) for page in pages):
        raise GenerationError("Story response `pages` is not a list of strings.")
    texts = tuple(page.strip() for page in pages if page.strip())
    if not min_pages <= len(texts) <= max_pages:
        raise GenerationError(
            f"Story response has {len(texts)} page(s); expected {min_pages}-{max_pages}."
        )
    return StorySkeleton(title=title.strip(), page_texts=texts)


class GeminiAssetProvider:
    """Asset provider backed by the Gemini REST API."""

    def __init__(
        self,
        capability: AuthorizedCapability,
        runtime: ProviderRuntimeConfig | None = None,
    ) -> None:
        """Initialize HTTP clients bound to an authorized capability."""

        self.runtime = runtime if runtime is not None else ProviderRuntimeConfig()
        self.prompts = PromptLibrary()
        self.rebind(capability)

    def rebind(self, capability: AuthorizedCapability) -> None:
        """Switch every client to the API key of a newly authorized capability."""

        timeout = self.runtime.request_timeout_seconds
        self._text = GeminiTextClient(api_key=capability.api_key, timeout_seconds=timeout)
        self._images = GeminiImageClient(api_key=capability.api_key, timeout_seconds=timeout)
        self._speech = GeminiSpeechClient(api_key=capability.api_key, timeout_seconds=timeout)

    async def generate_story_skeleton(self, prompt: str) -> StorySkeleton:
        """Generate and validate a story skeleton."""

        try:
            payload = await asyncio.to_thread(
                self._text.generate_json,
                model=self.runtime.model_story,
                prompt=self.prompts.story_prompt(prompt, MIN_STORY_PAGES, MAX_STORY_PAGES),
                response_schema=self.prompts.story_response_schema(),
            )
        except GeminiProviderError as exc:
            raise GenerationError(str(exc)) from exc
        return parse_story_skeleton(payload)

    async def generate_illustration(
        self, page_text: str, story_title: str, quality: QualityTier
    ) -> IllustrationAsset:
        """Generate one illustration, using the pro model for `2K`/`4K` tiers."""

        model = self.runtime.model_image_pro if quality.uses_pro_model else self.runtime.model_image
        try:
            mime_type, data = await asyncio.to_thread(
                self._images.generate_image,
                model=model,
                prompt=self.prompts.illustration_prompt(page_text, story_title),
                aspect_ratio="16:9",
                image_size=quality.value if quality.uses_pro_model else None,
            )
        except GeminiProviderError as exc:
            if exc.failure_kind == "permission_denied":
                raise PermissionDenied(str(exc)) from exc
            raise GenerationError(str(exc)) from exc
        return IllustrationAsset(mime_type=mime_type, data=data)

    async def synthesize_narration(self, page_text: str) -> bytes:
        """Synthesize narration audio bytes for one page."""

        try:
            return await asyncio.to_thread(
                self._speech.synthesize_speech,
                model=self.runtime.model_tts,
                voice=self.runtime.tts_voice,
                text=self.prompts.narration_prompt(page_text),
            )
        except GeminiProviderError as exc:
            raise GenerationError(str(exc)) from exc

    async def send_companion_message(
        self, history: Sequence[ChatMessage], new_message: str
    ) -> str:
        """Send the full transcript plus a new message and return the reply text."""

        turns = [
            ("model" if message.role is ChatRole.ASSISTANT else "user", message.text)
            for message in history
        ]
        turns.append(("user", new_message))
        try:
            return await asyncio.to_thread(
                self._text.chat,
                model=self.runtime.model_chat,
                system_instruction=self.prompts.companion_system_instruction(),
                turns=turns,
            )
        except GeminiProviderError as exc:
            raise GenerationError(str(exc)) from exc
