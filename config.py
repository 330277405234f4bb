"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_HOTKEY = "<ctrl>+<shift>+d"


@dataclass
class WhisperConfig:
    cli_path: str = "whisper-cli"
    model_path: str = ""
    language: str = "de"
    timeout_s: float = 60.0

    def validate(self) -> None:
        if not self.cli_path.strip():
            raise ValueError("Whisper CLI path must be specified.")
        if not self.model_path.strip():
            raise ValueError("Whisper model path must be specified.")
        if self.timeout_s <= 0:
            raise ValueError("Whisper timeout must be greater than 0 seconds.")


@dataclass
class PostProcessingConfig:
    enabled: bool = False
    llm_cli_path: str = ""
    model_path: str = ""
    timeout_s: float = 5.0
    gpu_acceleration: bool = True
    use_glossary: bool = False
    glossary_path: str = ""
    temperature: float = 0.0
    top_p: float = 0.25
    repeat_penalty: float = 1.05
    max_tokens: int = 512

    def validate(self) -> None:
        if not 1 <= self.timeout_s <= 30:
            raise ValueError("Timeout must be between 1 and 30 seconds.")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("Temperature must be between 0.0 and 2.0.")
        if not 0.0 <= self.top_p <= 1.0:
            raise ValueError("TopP must be between 0.0 and 1.0.")
        if not 1.0 <= self.repeat_penalty <= 2.0:
            raise ValueError("RepeatPenalty must be between 1.0 and 2.0.")
        if self.max_tokens <= 0:
            raise ValueError("MaxTokens must be greater than 0.")
        if not self.enabled:
            return
        if not self.llm_cli_path.strip():
            raise ValueError("LLM CLI path must be specified when post-processing is enabled.")
        if not self.model_path.strip():
            raise ValueError("LLM model path must be specified when post-processing is enabled.")
        if self.use_glossary and not self.glossary_path.strip():
            raise ValueError("Glossary path must be specified when glossary is enabled.")


def _section(cls: type, raw: Any) -> Any:
    """Build a config dataclass from a JSON object, ignoring unknown or mistyped keys."""
    instance = cls()
    if not isinstance(raw, dict):
        return instance
    for f in fields(cls):
        if f.name not in raw:
            continue
        value = raw[f.name]
        default = getattr(instance, f.name)
        if isinstance(default, bool):
            if isinstance(value, bool):
                setattr(instance, f.name, value)
        elif isinstance(default, (int, float)):
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                setattr(instance, f.name, type(default)(value))
        elif isinstance(value, str):
            setattr(instance, f.name, value)
    return instance


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "local_dictation" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_data_root(self) -> Path:
        data = self._read_all()
        value = data.get("data_root")
        if isinstance(value, str) and value.strip():
            return Path(value).expanduser()
        return Path.home() / "LocalDictation"

    def set_data_root(self, data_root: Path) -> None:
        data = self._read_all()
        data["data_root"] = str(data_root)
        self._write_all(data)

    def get_whisper_config(self) -> WhisperConfig:
        return _section(WhisperConfig, self._read_all().get("whisper"))

    def set_whisper_config(self, config: WhisperConfig) -> None:
        data = self._read_all()
        data["whisper"] = asdict(config)
        self._write_all(data)

    def get_post_processing_config(self) -> PostProcessingConfig:
        return _section(PostProcessingConfig, self._read_all().get("post_processing"))

    def set_post_processing_config(self, config: PostProcessingConfig) -> None:
        config.validate()
        data = self._read_all()
        data["post_processing"] = asdict(config)
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Config %s unreadable, using defaults: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
