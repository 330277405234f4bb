"""Protocol interfaces used by DictationOrchestrator and the app shell."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Protocol, Union

from models import HistoryEntry, PasteResult, PostProcessingOutcome, TranscriptionError, TranscriptionResult


class Recorder(Protocol):
    def start(self) -> None: ...

    def stop(self) -> Optional[Path]: ...


class Transcriber(Protocol):
    def transcribe(
        self,
        audio_file_path: Union[str, Path],
        language_code: str,
        model_path: Union[str, Path],
        executable_path: Union[str, Path],
        timeout_s: float,
    ) -> Union[TranscriptionResult, TranscriptionError]: ...


class PostProcessor(Protocol):
    def process(
        self,
        transcript: str,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> PostProcessingOutcome: ...


class ClipboardService(Protocol):
    def write(self, text: str) -> PasteResult: ...


class HistoryStore(Protocol):
    def write(self, entry: HistoryEntry) -> Path: ...
