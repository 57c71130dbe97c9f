"""Unit tests for YAML/environment configuration loader behavior."""

from __future__ import annotations

from pathlib import Path

import pytest

from magicbook.config import ConfigLoader, ProviderRuntimeConfig, StorybookConfig
from magicbook.models.datatypes import QualityTier


def test_config_loader_from_yaml_loads_valid_config_and_normalizes_values(
    tmp_path: Path,
) -> None:
    """YAML loader should parse valid payloads and normalize typed/blank values."""

    config_path = tmp_path / "magicbook.yml"
    config_path.write_text(
        """
output_dir: " stories "
image_quality: " 2k "
model_story: " gemini-story "
tts_voice: " Puck "
narration_sample_rate: " 16000 "
audio_player: file
api_key: " test-key "
request_timeout_seconds: 12.5
extra:
  profile: " bedtime "
""".strip(),
        encoding="utf-8",
    )

    config = ConfigLoader.from_yaml(config_path)

    assert config.output_dir == Path("stories")
    assert config.image_quality is QualityTier.MEDIUM
    assert config.model_story == "gemini-story"
    assert config.model_image == "gemini-2.5-flash-image"
    assert config.tts_voice == "Puck"
    assert config.narration_sample_rate == 16000
    assert config.audio_player == "file"
    assert config.api_key == "test-key"
    assert config.request_timeout_seconds == 12.5
    assert config.extra == {"profile": "bedtime"}


def test_config_loader_from_yaml_rejects_unknown_keys_and_bad_values(tmp_path: Path) -> None:
    """YAML loader should fail clearly on unknown fields and invalid values."""

    unknown_path = tmp_path / "unknown.yml"
    unknown_path.write_text("output_dir: out\nunknown_field: x\n", encoding="utf-8")
    with pytest.raises(ValueError, match=r"unsupported key\(s\): unknown_field"):
        ConfigLoader.from_yaml(unknown_path)

    quality_path = tmp_path / "quality.yml"
    quality_path.write_text("image_quality: 8K\n", encoding="utf-8")
    with pytest.raises(ValueError, match="image_quality"):
        ConfigLoader.from_yaml(quality_path)

    player_path = tmp_path / "player.yml"
    player_path.write_text("audio_player: vlc\n", encoding="utf-8")
    with pytest.raises(ValueError, match="audio_player"):
        ConfigLoader.from_yaml(player_path)

    rate_path = tmp_path / "rate.yml"
    rate_path.write_text("narration_sample_rate: 0\n", encoding="utf-8")
    with pytest.raises(ValueError, match="narration_sample_rate"):
        ConfigLoader.from_yaml(rate_path)

    list_path = tmp_path / "list.yml"
    list_path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="top-level mapping"):
        ConfigLoader.from_yaml(list_path)


def test_config_loader_from_yaml_accepts_empty_file(tmp_path: Path) -> None:
    """An empty YAML file yields default settings."""

    config_path = tmp_path / "empty.yml"
    config_path.write_text("", encoding="utf-8")

    assert ConfigLoader.from_yaml(config_path) == StorybookConfig()


def test_config_loader_from_env_reads_magicbook_variables() -> None:
    """Environment loader maps `MAGICBOOK_*` and leaves `GEMINI_API_KEY` to the gate."""

    config = ConfigLoader.from_env(
        {
            "MAGICBOOK_OUTPUT_DIR": "env-out",
            "MAGICBOOK_IMAGE_QUALITY": "high",
            "MAGICBOOK_MODEL_TTS": "tts-env",
            "MAGICBOOK_AUDIO_PLAYER": "file",
            "GEMINI_API_KEY": " env-key ",
            "UNRELATED": "ignored",
        }
    )

    assert config.output_dir == Path("env-out")
    assert config.image_quality is QualityTier.HIGH
    assert config.model_tts == "tts-env"
    assert config.audio_player == "file"
    assert config.api_key is None


def test_resolved_provider_runtime_carries_models_voice_and_timeout() -> None:
    """Provider runtime values come from normalized config fields."""

    config = StorybookConfig(
        model_chat=" config-chat ",
        tts_voice="Puck",
        request_timeout_seconds=12.5,
        api_key="config-key",
    )

    runtime = config.resolved_provider_runtime()

    assert runtime == ProviderRuntimeConfig(
        model_chat="config-chat",
        tts_voice="Puck",
        request_timeout_seconds=12.5,
    )
    assert not hasattr(runtime, "api_key")


def test_resolved_provider_runtime_rejects_blank_models() -> None:
    """Blank model names are configuration errors."""

    with pytest.raises(ValueError, match="model_image"):
        StorybookConfig(model_image="  ").resolved_provider_runtime()
