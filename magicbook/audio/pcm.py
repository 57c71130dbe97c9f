"""Narration audio decoding.

Responsibilities:
- Decode raw little-endian PCM16 payloads (or WAV containers) into `NarrationAudio`.
- Expose normalized per-channel float samples and WAV serialization for playback.
"""

from __future__ import annotations

from array import array
from dataclasses import dataclass
import io
import sys
import wave

from ..errors import GenerationError

_SAMPLE_WIDTH_BYTES = 2
_PCM16_SCALE = 32768.0


class NarrationDecodeError(GenerationError):
    """Raised when synthesized narration bytes cannot be decoded."""


@dataclass(frozen=True, slots=True)
class NarrationAudio:
    """Decoded narration ready for an audio output.

    Attributes:
        sample_rate: Frames per second.
        channel_count: Interleaved channel count.
        pcm: Interleaved little-endian signed 16-bit samples.
    """

    sample_rate: int
    channel_count: int
    pcm: bytes

    @property
    def frame_count(self) -> int:
        """Return the number of sample frames."""

        return len(self.pcm) // (_SAMPLE_WIDTH_BYTES * self.channel_count)

    @property
    def duration_seconds(self) -> float:
        """Return playback duration in seconds."""

        return self.frame_count / float(self.sample_rate)

    def channel_samples(self, channel: int) -> list[float]:
        """Return samples of one channel normalized to `[-1.0, 1.0)`."""

        if not 0 <= channel < self.channel_count:
            raise IndexError(f"Channel {channel} is outside {self.channel_count} channel(s).")
        samples = _pcm16_array(self.pcm)
        return [value / _PCM16_SCALE for value in samples[channel :: self.channel_count]]

    def to_wav_bytes(self) -> bytes:
        """Serialize the audio as a PCM16 WAV container."""

        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav_file:
            wav_file.setnchannels(self.channel_count)
            wav_file.setsampwidth(_SAMPLE_WIDTH_BYTES)
            wav_file.setframerate(self.sample_rate)
            wav_file.writeframes(self.pcm)
        return buffer.getvalue()


def decode_narration(payload: bytes, sample_rate: int = 24000, channel_count: int = 1) -> NarrationAudio:
    """Decode provider narration bytes into playable audio.

    WAV containers are read with their own header values; anything else is
    treated as headerless PCM16 at `sample_rate` and `channel_count`.

    Raises:
        NarrationDecodeError: If the payload is empty or not frame-aligned.
    """

    if not payload:
        raise NarrationDecodeError("Narration payload is empty.")
    if payload[:4] == b"RIFF":
        return _decode_wav(payload)

    if sample_rate <= 0 or channel_count <= 0:
        raise NarrationDecodeError("Narration sample rate and channel count must be positive.")
    frame_width = _SAMPLE_WIDTH_BYTES * channel_count
    if len(payload) % frame_width:
        raise NarrationDecodeError(
            f"Narration payload of {len(payload)} bytes is not aligned to {frame_width}-byte frames."
        )
    return NarrationAudio(sample_rate=sample_rate, channel_count=channel_count, pcm=bytes(payload))


def _decode_wav(payload: bytes) -> NarrationAudio:
    """Read a PCM16 WAV container."""

    try:
        with wave.open(io.BytesIO(payload), "rb") as wav_file:
            sample_width = wav_file.getsampwidth()
            channel_count = wav_file.getnchannels()
            sample_rate = wav_file.getframerate()
            frames = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError) as exc:
        raise NarrationDecodeError("Narration payload is not a readable WAV container.") from exc
    if sample_width != _SAMPLE_WIDTH_BYTES:
        raise NarrationDecodeError(f"Narration WAV sample width {sample_width} is not 16-bit.")
    if sample_rate <= 0:
        raise NarrationDecodeError("Narration WAV has invalid sample rate.")
    return NarrationAudio(sample_rate=sample_rate, channel_count=channel_count, pcm=frames)


def _pcm16_array(pcm: bytes) -> array:
    """Load little-endian PCM16 bytes into a native signed-short array."""

    samples = array("h")
    samples.frombytes(pcm)
    if sys.byteorder == "big":
        samples.byteswap()
    return samples
