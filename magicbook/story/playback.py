"""Single-owner narration playback.

Responsibilities:
- Run the `IDLE -> STARTING -> PLAYING -> IDLE` narration state machine.
- Own at most one playback handle and release it on every exit path.
- Discard narration fetches that were superseded before they resolved.

Key types:
- `PlaybackState`: narration session state.
- `PlaybackController`: toggle/stop operations over one `AudioOutput`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum

from ..audio.output import AudioOutput, PlaybackHandle
from ..audio.pcm import decode_narration
from ..llm.asset_provider import AssetProvider
from ..telemetry.logger import SessionLogger

NARRATION_FAILURE_NOTICE = "The storyteller lost their voice! Please try reading aloud again."


class PlaybackState(str, Enum):
    """Narration session state."""

    IDLE = "idle"
    STARTING = "starting"
    PLAYING = "playing"


PlaybackListener = Callable[[PlaybackState], None]


class PlaybackController:
    """Own the single narration playback session.

    Every start, stop, and natural completion bumps or checks a session token;
    asynchronous results carrying an older token are dropped.
    """

    def __init__(
        self,
        provider: AssetProvider,
        output: AudioOutput,
        *,
        sample_rate: int = 24000,
        channel_count: int = 1,
        logger: SessionLogger | None = None,
    ) -> None:
        """Initialize the controller in the idle state."""

        self._provider = provider
        self._output = output
        self._sample_rate = sample_rate
        self._channel_count = channel_count
        self._logger = logger
        self._state = PlaybackState.IDLE
        self._handle: PlaybackHandle | None = None
        self._session = 0
        self._start_task: asyncio.Task[None] | None = None
        self._listeners: list[PlaybackListener] = []
        self.last_failure: str | None = None

    @property
    def state(self) -> PlaybackState:
        """Return the current session state."""

        return self._state

    @property
    def has_handle(self) -> bool:
        """Return whether a playback handle is currently held."""

        return self._handle is not None

    def subscribe(self, listener: PlaybackListener) -> None:
        """Register a state-change listener."""

        self._listeners.append(listener)

    def toggle_narration(self, page_text: str) -> PlaybackState:
        """Stop an active or starting session, or start narrating `page_text`.

        Must be called with a running event loop when starting.
        """

        if self._state is not PlaybackState.IDLE:
            self.stop(reason="toggle")
            return self._state

        loop = asyncio.get_running_loop()
        self._session += 1
        token = self._session
        self.last_failure = None
        self._set_state(PlaybackState.STARTING)
        self._start_task = loop.create_task(self._start(token, page_text))
        self._log("starting", session=token)
        return self._state

    def stop(self, reason: str = "stop") -> None:
        """Return to idle, releasing the handle and invalidating any outstanding start."""

        if self._state is PlaybackState.IDLE:
            return
        self._session += 1
        handle, self._handle = self._handle, None
        self._set_state(PlaybackState.IDLE)
        if handle is not None:
            handle.stop()
        self._log("stopped", reason=reason, session=self._session)

    def close(self) -> None:
        """Stop playback on component teardown."""

        self.stop(reason="teardown")

    async def wait_settled(self) -> None:
        """Await the outstanding start step, if any."""

        if self._start_task is not None:
            await asyncio.gather(self._start_task, return_exceptions=True)

    async def _start(self, token: int, page_text: str) -> None:
        """Fetch, decode, and play narration unless the session was superseded."""

        try:
            payload = await self._provider.synthesize_narration(page_text)
            audio = decode_narration(payload, self._sample_rate, self._channel_count)
        except Exception as exc:
            if token != self._session:
                self._debug("start-discarded", session=token, outcome="failure")
                return
            self._fail(token, type(exc).__name__)
            return

        if token != self._session or self._state is not PlaybackState.STARTING:
            self._debug("start-discarded", session=token, outcome="success")
            return

        try:
            handle = self._output.play(audio, lambda: self._on_finished(token))
        except Exception as exc:
            self._fail(token, type(exc).__name__)
            return
        self._handle = handle
        self._set_state(PlaybackState.PLAYING)
        self._log("playing", session=token, duration_seconds=f"{audio.duration_seconds:.2f}")

    def _on_finished(self, token: int) -> None:
        """Return to idle when the current session's playback ends naturally."""

        if token != self._session or self._state is not PlaybackState.PLAYING:
            return
        self._handle = None
        self._set_state(PlaybackState.IDLE)
        self._log("finished", session=token)

    def _fail(self, token: int, error_type: str) -> None:
        """Record a generic narration failure and return to idle."""

        self.last_failure = NARRATION_FAILURE_NOTICE
        self._set_state(PlaybackState.IDLE)
        if self._logger is not None:
            self._logger.log_failure("playback", "start-failed", error_type, session=token)

    def _set_state(self, state: PlaybackState) -> None:
        """Apply a state change and notify listeners."""

        if state is self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _log(self, event: str, **context: object) -> None:
        """Emit a playback event when a logger is configured."""

        if self._logger is not None:
            self._logger.log_event("playback", event, **context)

    def _debug(self, event: str, **context: object) -> None:
        """Emit a playback diagnostic when a logger is configured."""

        if self._logger is not None:
            self._logger.log_debug("playback", event, **context)
