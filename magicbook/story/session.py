"""Authorization-gated story session.

Responsibilities:
- Turn a prompt into a story document and open it at page 0.
- Own the orchestrator, playback controller, and companion chat of one session.
- Return to the pre-story state on reset or story-creation failure.
- Re-authorize after a permission failure and rebind the provider.
"""

from __future__ import annotations

import asyncio

from ..audio.output import AudioOutput
from ..auth import AuthorizedCapability, CapabilityGate
from ..companion.chat import CompanionChat
from ..errors import AuthError, StoryCreationError
from ..llm.asset_provider import AssetProvider
from ..models.datatypes import QualityTier, Story
from ..telemetry.logger import SessionLogger
from .document import StoryDocument
from .orchestrator import PageOrchestrator
from .playback import PlaybackController, PlaybackState


class StorySession:
    """Entry point into the story core, constructed only from an authorized capability."""

    def __init__(
        self,
        capability: AuthorizedCapability,
        provider: AssetProvider,
        audio_output: AudioOutput,
        *,
        gate: CapabilityGate | None = None,
        quality: QualityTier = QualityTier.LOW,
        logger: SessionLogger | None = None,
        sample_rate: int = 24000,
    ) -> None:
        """Initialize an idle session with no story."""

        if not isinstance(capability, AuthorizedCapability):
            raise AuthError("A story session requires an authorized capability.")
        self.capability = capability
        self._provider = provider
        self._audio_output = audio_output
        self._gate = gate
        self._quality = quality
        self._logger = logger
        self.playback = PlaybackController(
            provider, audio_output, sample_rate=sample_rate, logger=logger
        )
        self.chat = CompanionChat(provider, logger=logger)
        self._orchestrator: PageOrchestrator | None = None
        self._generating = False

    @property
    def is_generating(self) -> bool:
        """Return whether a story skeleton request is outstanding."""

        return self._generating

    @property
    def has_story(self) -> bool:
        """Return whether a story is currently open."""

        return self._orchestrator is not None

    @property
    def orchestrator(self) -> PageOrchestrator:
        """Return the orchestrator of the open story.

        Raises:
            RuntimeError: If no story is open.
        """

        if self._orchestrator is None:
            raise RuntimeError("No story is open.")
        return self._orchestrator

    @property
    def document(self) -> StoryDocument:
        """Return the document of the open story."""

        return self.orchestrator.document

    @property
    def story(self) -> Story | None:
        """Return the open story, if any."""

        return None if self._orchestrator is None else self._orchestrator.document.story

    @property
    def needs_reauthorization(self) -> bool:
        """Return whether an illustration failed for lack of entitlement."""

        return self._orchestrator is not None and self._orchestrator.needs_reauthorization

    async def start_story(self, prompt: str, quality: QualityTier | None = None) -> Story:
        """Generate a story for `prompt` and open it at page 0.

        Raises:
            StoryCreationError: If the prompt is blank or the skeleton request fails;
                the session is left without a story.
        """

        if not prompt.strip():
            raise StoryCreationError("Story prompt is empty.")
        if self._generating:
            raise StoryCreationError("A story is already being generated.")
        self.reset()
        tier = quality or self._quality
        self._generating = True
        self._log("story-requested", quality=tier)
        try:
            skeleton = await self._provider.generate_story_skeleton(prompt.strip())
            document = StoryDocument.from_skeleton(skeleton)
        except Exception as exc:
            if self._logger is not None:
                self._logger.log_failure("session", "story-failed", type(exc).__name__)
            raise StoryCreationError(str(exc)) from exc
        finally:
            self._generating = False

        self._orchestrator = PageOrchestrator(
            document,
            self._provider,
            tier,
            playback=self.playback,
            logger=self._logger,
        )
        self._log("story-created", story=document.story.id, pages=document.page_count)
        self._orchestrator.open()
        return document.story

    def next_page(self) -> bool:
        """Move to the next page of the open story."""

        return self.orchestrator.next_page()

    def previous_page(self) -> bool:
        """Move to the previous page of the open story."""

        return self.orchestrator.previous_page()

    def toggle_narration(self) -> PlaybackState:
        """Start or stop narration of the viewed page."""

        return self.orchestrator.toggle_narration()

    def retry_illustration(self, index: int | None = None) -> bool:
        """Manually re-attempt an illustration of the open story."""

        return self.orchestrator.retry_illustration(index)

    def reauthorize(self) -> AuthorizedCapability:
        """Select a new key, rebind the provider, and clear the re-authorization flag.

        No fetch is issued here; revisiting the failed page retries it.

        Raises:
            AuthError: If no gate is configured or the authorization flow fails.
        """

        capability = self._require_gate().request_capability_authorization()
        self._adopt_capability(capability)
        return capability

    async def reauthorize_async(self) -> AuthorizedCapability:
        """Run the interactive key prompt in a worker thread, then rebind on the loop.

        Illustration fetches keep running while the prompt waits for input.

        Raises:
            AuthError: If no gate is configured or the authorization flow fails.
        """

        gate = self._require_gate()
        capability = await asyncio.to_thread(gate.request_capability_authorization)
        self._adopt_capability(capability)
        return capability

    def _require_gate(self) -> CapabilityGate:
        """Return the configured gate or raise `AuthError`."""

        if self._gate is None:
            raise AuthError("Re-authorization is not available for this session.")
        return self._gate

    def _adopt_capability(self, capability: AuthorizedCapability) -> None:
        """Rebind the provider to `capability` and clear the re-authorization flag."""

        self._provider.rebind(capability)
        self.capability = capability
        if self._orchestrator is not None:
            self._orchestrator.acknowledge_reauthorization()
        self._log("reauthorized", source=capability.source)

    def reset(self) -> None:
        """Stop narration and discard the open story, if any."""

        self.playback.stop(reason="reset")
        if self._orchestrator is None:
            return
        story_id = self._orchestrator.document.story.id
        self._orchestrator.close()
        self._orchestrator = None
        self._log("story-reset", story=story_id)

    async def drain(self) -> None:
        """Await outstanding illustration fetches and the narration start step."""

        if self._orchestrator is not None:
            await self._orchestrator.drain()
        await self.playback.wait_settled()

    def close(self) -> None:
        """Reset the session and release the audio output."""

        self.reset()
        self.playback.close()
        self._audio_output.close()
        self._log("closed")

    def _log(self, event: str, **context: object) -> None:
        """Emit a session event when a logger is configured."""

        if self._logger is not None:
            self._logger.log_event("session", event, **context)
