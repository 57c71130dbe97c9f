"""Audio output backends for narration playback.

Responsibilities:
- Define the `AudioOutput`/`PlaybackHandle` seam used by the playback controller.
- Play narration through an `ffplay` subprocess, or export it as WAV files.

Notes:
- `on_finished` callbacks are always invoked on the event loop thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
import shutil
import subprocess
import tempfile
from typing import Protocol

from ..io.storage import ArtifactStore
from .pcm import NarrationAudio

FinishedCallback = Callable[[], None]


class PlaybackHandle(Protocol):
    """Handle for one started playback."""

    def stop(self) -> None:
        """Stop playback and release the underlying audio resource."""


class AudioOutput(Protocol):
    """Protocol for narration playback backends."""

    def play(self, audio: NarrationAudio, on_finished: FinishedCallback) -> PlaybackHandle:
        """Start playback and return its handle; `on_finished` fires when playback ends."""

    def close(self) -> None:
        """Release backend resources."""


class _SubprocessPlaybackHandle:
    """Playback handle owning one player process and its temporary WAV file."""

    def __init__(self, process: subprocess.Popen[bytes], wav_path: Path) -> None:
        """Initialize the handle around a running player process."""

        self._process = process
        self._wav_path = wav_path
        self._stopped = False

    def stop(self) -> None:
        """Terminate the player process if it is still running."""

        if self._stopped:
            return
        self._stopped = True
        if self._process.poll() is None:
            self._process.terminate()
        self.release()

    def release(self) -> None:
        """Delete the temporary WAV file."""

        self._wav_path.unlink(missing_ok=True)

    def wait(self) -> int:
        """Block until the player process exits."""

        return self._process.wait()


class FfplayAudioOutput:
    """Play narration through `ffplay` without a display window."""

    def __init__(self, executable: str = "ffplay") -> None:
        """Initialize output with the player executable name or path."""

        self.executable = executable

    def play(self, audio: NarrationAudio, on_finished: FinishedCallback) -> PlaybackHandle:
        """Write a temporary WAV, start `ffplay`, and watch for process exit."""

        loop = asyncio.get_running_loop()
        player = shutil.which(self.executable) or self.executable
        with tempfile.NamedTemporaryFile(prefix="magicbook-", suffix=".wav", delete=False) as handle:
            handle.write(audio.to_wav_bytes())
            wav_path = Path(handle.name)
        try:
            process = subprocess.Popen(
                [player, "-nodisp", "-autoexit", "-loglevel", "quiet", str(wav_path)],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError:
            wav_path.unlink(missing_ok=True)
            raise

        playback = _SubprocessPlaybackHandle(process, wav_path)
        watcher = loop.run_in_executor(None, playback.wait)

        def _on_exit(_: asyncio.Future[int]) -> None:
            playback.release()
            on_finished()

        watcher.add_done_callback(_on_exit)
        return playback

    def close(self) -> None:
        """No persistent resources to release."""


class _ExportPlaybackHandle:
    """Handle for an exported narration; stopping suppresses the finish callback."""

    def __init__(self) -> None:
        """Initialize the handle in the playing state."""

        self.stopped = False

    def stop(self) -> None:
        """Mark the playback as stopped."""

        self.stopped = True


class WavExportAudioOutput:
    """Write narration WAV files into an artifact store instead of playing them."""

    def __init__(self, store: ArtifactStore, directory: Path = Path("narration")) -> None:
        """Initialize output with the destination artifact store."""

        self.store = store
        self.directory = directory
        self.written: list[Path] = []
        self._counter = 0

    def play(self, audio: NarrationAudio, on_finished: FinishedCallback) -> PlaybackHandle:
        """Save the narration and report completion on the next loop iteration."""

        self._counter += 1
        path = self.store.save_audio(
            self.directory / f"narration-{self._counter:03d}.wav",
            audio.to_wav_bytes(),
        )
        self.written.append(path)
        handle = _ExportPlaybackHandle()

        def _finish() -> None:
            if not handle.stopped:
                on_finished()

        asyncio.get_running_loop().call_soon(_finish)
        return handle

    def close(self) -> None:
        """No persistent resources to release."""
