"""Narration audio decoding and playback backends."""

from .output import AudioOutput, FfplayAudioOutput, PlaybackHandle, WavExportAudioOutput
from .pcm import NarrationAudio, NarrationDecodeError, decode_narration

__all__ = [
    "AudioOutput",
    "FfplayAudioOutput",
    "NarrationAudio",
    "NarrationDecodeError",
    "PlaybackHandle",
    "WavExportAudioOutput",
    "decode_narration",
]
