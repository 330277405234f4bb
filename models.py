"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from errors import ErrorKind


class AppState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"
    POST_PROCESSING = "POST_PROCESSING"


class OutputMode(str, Enum):
    PLAIN = "plain"
    STRUCTURED = "structured"


@dataclass(frozen=True)
class StateChangedEvent:
    old_state: AppState
    new_state: AppState
    timestamp: datetime


@dataclass
class TranscriptionSegment:
    start: float
    end: float
    text: str


@dataclass
class TranscriptionResult:
    text: str
    language_code: str
    duration_seconds: float
    segments: Optional[list[TranscriptionSegment]] = None
    meta: Optional[dict[str, Any]] = None

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


@dataclass
class TranscriptionError:
    kind: ErrorKind
    message: str = ""
    exit_code: Optional[int] = None
    stderr: str = ""
    raw_output: str = ""


@dataclass
class PostProcessingOutcome:
    succeeded: bool
    text: str
    mode: OutputMode
    gpu_used: bool = False
    elapsed_s: float = 0.0


@dataclass
class StageTimings:
    transcription_s: float = 0.0
    post_processing_s: float = 0.0
    total_s: float = 0.0


@dataclass
class DictationCompleted:
    text: str
    mode: OutputMode
    used_fallback: bool
    timings: StageTimings
    transcription: Optional[TranscriptionResult] = None


@dataclass
class DictationFailed:
    error_kind: ErrorKind
    message: str = ""


@dataclass
class NoSpeechDetected:
    duration_seconds: float = 0.0


@dataclass
class HistoryEntry:
    created: datetime
    text: str
    language: str = ""
    stt_model: str = ""
    duration_seconds: float = 0.0
    post_processed: bool = False


@dataclass
class PasteResult:
    success: bool
    reason: str
    pasted: bool = False
