"""Configuration model and loaders for Magicbook.

Responsibilities:
- Define runtime configuration as a typed dataclass.
- Resolve the model, voice, and timeout settings handed to provider clients.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `StorybookConfig`: normalized settings for one reading session.
- `ProviderRuntimeConfig`: resolved model/voice/timeout values for provider calls.
- `ConfigLoader`: static construction helpers for `StorybookConfig`.

API keys are not part of the provider runtime; `CapabilityGate` owns key
selection and precedence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models.datatypes import QualityTier
from .parsing import normalize_optional_string, parse_positive_number


_DEFAULT_STORY_MODEL = "gemini-3-flash-preview"
_DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
_DEFAULT_IMAGE_PRO_MODEL = "gemini-3-pro-image-preview"
_DEFAULT_TTS_MODEL = "gemini-2.5-flash-preview-tts"
_DEFAULT_CHAT_MODEL = "gemini-3-pro-preview"
_DEFAULT_TTS_VOICE = "Kore"
_DEFAULT_SAMPLE_RATE = 24000
_DEFAULT_TIMEOUT_SECONDS = 60.0
_SUPPORTED_AUDIO_PLAYERS = frozenset({"ffplay", "file"})

# runtime key -> environment variable
_RUNTIME_ENV_KEYS = {
    "model_story": "MAGICBOOK_MODEL_STORY",
    "model_image": "MAGICBOOK_MODEL_IMAGE",
    "model_image_pro": "MAGICBOOK_MODEL_IMAGE_PRO",
    "model_tts": "MAGICBOOK_MODEL_TTS",
    "model_chat": "MAGICBOOK_MODEL_CHAT",
    "tts_voice": "MAGICBOOK_TTS_VOICE",
}


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved runtime model identifiers and limits for provider calls.

    Attributes:
        model_story: Model producing the story skeleton.
        model_image: Standard image model (`1K` tier).
        model_image_pro: Pro image model (`2K`/`4K` tiers).
        model_tts: Speech synthesis model.
        model_chat: Companion chat model.
        tts_voice: Prebuilt narration voice name.
        request_timeout_seconds: HTTP timeout per provider request.
    """

    model_story: str = _DEFAULT_STORY_MODEL
    model_image: str = _DEFAULT_IMAGE_MODEL
    model_image_pro: str = _DEFAULT_IMAGE_PRO_MODEL
    model_tts: str = _DEFAULT_TTS_MODEL
    model_chat: str = _DEFAULT_CHAT_MODEL
    tts_voice: str = _DEFAULT_TTS_VOICE
    request_timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS


@dataclass(slots=True)
class StorybookConfig:
    """Runtime configuration for one reading session.

    Attributes:
        output_dir: Directory receiving exported illustrations and narration files.
        image_quality: Default illustration quality tier.
        model_story: Story skeleton model identifier.
        model_image: Standard image model identifier.
        model_image_pro: Pro image model identifier.
        model_tts: Speech model identifier.
        model_chat: Companion chat model identifier.
        tts_voice: Narration voice identifier.
        narration_sample_rate: Sample rate of headerless narration PCM.
        audio_player: `ffplay` to play narration, `file` to export WAV files.
        api_key: Optional API key from a config file, the lowest-precedence key source.
        request_timeout_seconds: HTTP timeout per provider request.
        extra: Additional metadata for future extensions.
    """

    output_dir: Path = Path("out")
    image_quality: QualityTier = QualityTier.LOW
    model_story: str = _DEFAULT_STORY_MODEL
    model_image: str = _DEFAULT_IMAGE_MODEL
    model_image_pro: str = _DEFAULT_IMAGE_PRO_MODEL
    model_tts: str = _DEFAULT_TTS_MODEL
    model_chat: str = _DEFAULT_CHAT_MODEL
    tts_voice: str = _DEFAULT_TTS_VOICE
    narration_sample_rate: int = _DEFAULT_SAMPLE_RATE
    audio_player: str = "ffplay"
    api_key: str | None = None
    request_timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate configuration values before a session starts."""

        for field_name in _RUNTIME_ENV_KEYS:
            self._require_non_empty(getattr(self, field_name), field_name)
        if self.audio_player not in _SUPPORTED_AUDIO_PLAYERS:
            supported = ", ".join(sorted(_SUPPORTED_AUDIO_PLAYERS))
            raise ValueError(
                f"Unsupported `audio_player` value `{self.audio_player}`; supported: {supported}."
            )
        if self.narration_sample_rate <= 0:
            raise ValueError("`narration_sample_rate` must be a positive integer.")
        if self.request_timeout_seconds <= 0:
            raise ValueError("`request_timeout_seconds` must be a positive number.")

    def resolved_provider_runtime(self) -> ProviderRuntimeConfig:
        """Return normalized model, voice, and timeout settings for provider clients."""

        values: dict[str, str] = {}
        for key in _RUNTIME_ENV_KEYS:
            value = normalize_optional_string(getattr(self, key))
            self._require_non_empty(value, key)
            values[key] = value
        return ProviderRuntimeConfig(
            **values, request_timeout_seconds=self.request_timeout_seconds
        )

    @staticmethod
    def _require_non_empty(value: object, field_name: str) -> None:
        """Validate that runtime string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


class ConfigLoader:
    """Factory methods for creating `StorybookConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "output_dir",
            "image_quality",
            "model_story",
            "model_image",
            "model_image_pro",
            "model_tts",
            "model_chat",
            "tts_voice",
            "narration_sample_rate",
            "audio_player",
            "api_key",
            "request_timeout_seconds",
            "extra",
        }
    )
    _STRING_KEYS = (
        "model_story",
        "model_image",
        "model_image_pro",
        "model_tts",
        "model_chat",
        "tts_voice",
        "audio_player",
    )

    @staticmethod
    def from_yaml(path: Path) -> StorybookConfig:
        """Create a validated config from a YAML file."""

        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> StorybookConfig:
        """Create a validated config from `MAGICBOOK_*` variables.

        `GEMINI_API_KEY` is read by `CapabilityGate`, not here.
        """

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for key in (
            "output_dir",
            "image_quality",
            "narration_sample_rate",
            "audio_player",
            "request_timeout_seconds",
        ):
            value = normalize_optional_string(env_map.get(f"MAGICBOOK_{key.upper()}"))
            if value is not None:
                payload[key] = value
        for key, env_key in _RUNTIME_ENV_KEYS.items():
            value = normalize_optional_string(env_map.get(env_key))
            if value is not None:
                payload[key] = value

        return ConfigLoader._build_config_from_mapping(payload, source_label="Environment")

    @staticmethod
    def _build_config_from_mapping(payload: Mapping[str, Any], source_label: str) -> StorybookConfig:
        """Build a validated config from a normalized mapping payload."""

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            raise ValueError(f"{source_label} includes unsupported key(s): {', '.join(unknown)}.")

        config = StorybookConfig()
        output_dir = normalize_optional_string(payload.get("output_dir"))
        if output_dir is not None:
            config.output_dir = Path(output_dir)
        quality = normalize_optional_string(payload.get("image_quality"))
        if quality is not None:
            try:
                config.image_quality = QualityTier.parse(quality)
            except ValueError as exc:
                raise ValueError(f"{source_label} field `image_quality`: {exc}") from exc
        for key in ConfigLoader._STRING_KEYS:
            value = normalize_optional_string(payload.get(key))
            if value is not None:
                setattr(config, key, value)
        config.api_key = normalize_optional_string(payload.get("api_key"))
        if "narration_sample_rate" in payload:
            config.narration_sample_rate = ConfigLoader._positive_int(
                payload["narration_sample_rate"], "narration_sample_rate", source_label
            )
        if "request_timeout_seconds" in payload:
            try:
                config.request_timeout_seconds = parse_positive_number(
                    payload["request_timeout_seconds"], "request_timeout_seconds"
                )
            except ValueError as exc:
                raise ValueError(f"{source_label} field {exc}") from exc
        config.extra = ConfigLoader._optional_string_map(payload, "extra", source_label)

        try:
            config.validate()
        except ValueError as exc:
            raise ValueError(f"{source_label}: {exc}") from exc
        return config

    @staticmethod
    def _positive_int(raw_value: Any, key: str, source_label: str) -> int:
        """Read and validate a positive integer payload field."""

        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.")
        try:
            parsed = int(str(raw_value).strip())
        except ValueError as exc:
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.") from exc
        if parsed <= 0:
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.")
        return parsed

    @staticmethod
    def _optional_string_map(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> dict[str, str]:
        """Read an optional mapping with non-empty string keys and values."""

        raw = payload.get(key)
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `{key}` must be a mapping/object.")

        normalized: dict[str, str] = {}
        for raw_key, raw_value in raw.items():
            key_value = normalize_optional_string(raw_key)
            value_value = normalize_optional_string(raw_value)
            if key_value is None:
                raise ValueError(f"{source_label} field `{key}` contains a blank key.")
            if value_value is None:
                raise ValueError(
                    f"{source_label} field `{key}` contains blank value for `{key_value}`."
                )
            normalized[key_value] = value_value
        return normalized
