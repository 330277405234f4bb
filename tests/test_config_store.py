from __future__ import annotations

import json
from pathlib import Path

import pytest

from config import DEFAULT_HOTKEY, JsonConfigStore, PostProcessingConfig, WhisperConfig


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_hotkey() == DEFAULT_HOTKEY
    assert store.get_whisper_config() == WhisperConfig()

    store.set_hotkey("<ctrl>+<alt>+space")
    store.set_data_root(tmp_path / "data")
    store.set_whisper_config(WhisperConfig(model_path="/models/ggml-base.bin", language="en"))

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_hotkey() == "<ctrl>+<alt>+space"
    assert reloaded.get_data_root() == tmp_path / "data"
    assert reloaded.get_whisper_config().model_path == "/models/ggml-base.bin"
    assert reloaded.get_whisper_config().language == "en"


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_hotkey() == DEFAULT_HOTKEY
    assert store.get_post_processing_config() == PostProcessingConfig()


def test_config_non_object_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    assert JsonConfigStore(path=path).get_whisper_config() == WhisperConfig()


def test_mistyped_values_keep_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"post_processing": {"enabled": "yes", "timeout_s": 10, "top_p": True, "unknown": 1}}),
        encoding="utf-8",
    )

    config = JsonConfigStore(path=path).get_post_processing_config()

    assert config.enabled is False
    assert config.timeout_s == 10.0
    assert config.top_p == 0.25


def test_post_processing_round_trip(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    config = PostProcessingConfig(enabled=True, llm_cli_path="llama-cli", model_path="/m.gguf", timeout_s=8.0)

    store.set_post_processing_config(config)

    assert store.get_post_processing_config() == config


def test_invalid_post_processing_config_is_not_saved(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")

    with pytest.raises(ValueError):
        store.set_post_processing_config(PostProcessingConfig(timeout_s=60))

    assert store.get_post_processing_config() == PostProcessingConfig()


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"timeout_s": 0.5}, "Timeout"),
        ({"temperature": 2.5}, "Temperature"),
        ({"top_p": 1.5}, "TopP"),
        ({"repeat_penalty": 0.9}, "RepeatPenalty"),
        ({"max_tokens": 0}, "MaxTokens"),
        ({"enabled": True, "model_path": "/m.gguf"}, "CLI path"),
        ({"enabled": True, "llm_cli_path": "llama-cli"}, "model path"),
        ({"enabled": True, "llm_cli_path": "x", "model_path": "y", "use_glossary": True}, "Glossary"),
    ],
)
def test_post_processing_validation(overrides: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        PostProcessingConfig(**overrides).validate()


def test_disabled_post_processing_needs_no_paths() -> None:
    PostProcessingConfig(enabled=False).validate()


def test_whisper_validation() -> None:
    with pytest.raises(ValueError, match="model path"):
        WhisperConfig().validate()
    WhisperConfig(model_path="/m.bin").validate()
