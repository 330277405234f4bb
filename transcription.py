"""Speech-to-text adapter around a whisper.cpp style command-line tool.

The tool prints one JSON document on stdout::

    {"text": "...", "language": "de", "duration_sec": 5.2,
     "segments": [{"start": 0.0, "end": 1.2, "text": "..."}], "meta": {...}}

and reports failures through its exit code (see ``EXIT_CODE_KINDS``).
Every outcome is returned as a ``TranscriptionResult`` or a
``TranscriptionError``; only external cancellation propagates, as
``ProcessCancelled``.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

from errors import ERROR_MESSAGES, ErrorKind, LaunchFailed
from models import TranscriptionError, TranscriptionResult, TranscriptionSegment
from process_invoker import ProcessInvocationResult, ProcessInvocationSpec, ProcessInvoker

logger = logging.getLogger(__name__)

EXIT_CODE_KINDS = {
    1: ErrorKind.GENERIC_FAILURE,
    2: ErrorKind.MODEL_NOT_FOUND,
    3: ErrorKind.DEVICE_ERROR,
    4: ErrorKind.TRANSCRIPTION_TIMEOUT,
    5: ErrorKind.INVALID_INPUT,
}

TranscriptionOutcome = Union[TranscriptionResult, TranscriptionError]


class OutputParseError(ValueError):
    pass


def _require(data: dict, key: str, kinds: tuple[type, ...]) -> Any:
    if key not in data:
        raise OutputParseError(f"missing required field '{key}'")
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, kinds):
        raise OutputParseError(f"field '{key}' has unexpected type {type(value).__name__}")
    return value


def _parse_segments(raw: Any) -> Optional[list[TranscriptionSegment]]:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise OutputParseError("field 'segments' must be a list")
    segments = []
    for item in raw:
        if not isinstance(item, dict):
            raise OutputParseError("segment entries must be objects")
        segments.append(
            TranscriptionSegment(
                start=float(_require(item, "start", (int, float))),
                end=float(_require(item, "end", (int, float))),
                text=_require(item, "text", (str,)),
            )
        )
    return segments


def parse_output(stdout: str) -> TranscriptionResult:
    """Parse the tool's JSON contract; unknown fields are ignored."""
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise OutputParseError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise OutputParseError("top-level JSON value must be an object")

    meta = data.get("meta")
    if meta is not None and not isinstance(meta, dict):
        raise OutputParseError("field 'meta' must be an object")

    return TranscriptionResult(
        text=_require(data, "text", (str,)),
        language_code=_require(data, "language", (str,)),
        duration_seconds=float(_require(data, "duration_sec", (int, float))),
        segments=_parse_segments(data.get("segments")),
        meta=meta,
    )


class TranscriptionAdapter:
    def __init__(
        self,
        invoker: Optional[ProcessInvoker] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._invoker = invoker or ProcessInvoker()
        self._cancel_event = cancel_event

    @staticmethod
    def build_invocation(
        audio_file_path: Union[str, Path],
        language_code: str,
        model_path: Union[str, Path],
        executable_path: Union[str, Path],
        timeout_s: float,
    ) -> ProcessInvocationSpec:
        return ProcessInvocationSpec(
            executable_path=str(executable_path),
            arguments=(
                "--model",
                str(model_path),
                "--language",
                language_code,
                "--output-format",
                "json",
                str(audio_file_path),
            ),
            timeout_s=timeout_s,
        )

    def transcribe(
        self,
        audio_file_path: Union[str, Path],
        language_code: str,
        model_path: Union[str, Path],
        executable_path: Union[str, Path],
        timeout_s: float,
    ) -> TranscriptionOutcome:
        if not Path(audio_file_path).is_file():
            return TranscriptionError(
                kind=ErrorKind.INVALID_INPUT,
                message=f"audio file not found: {audio_file_path}",
            )

        spec = self.build_invocation(audio_file_path, language_code, model_path, executable_path, timeout_s)
        logger.info("Transcribing %s with %s (language %s)", audio_file_path, spec.executable_path, language_code)
        try:
            result = self._invoker.invoke(spec, self._cancel_event)
        except LaunchFailed as exc:
            return TranscriptionError(kind=ErrorKind.LAUNCH_FAILED, message=str(exc))

        return self._interpret(result)

    def _interpret(self, result: ProcessInvocationResult) -> TranscriptionOutcome:
        if result.timed_out:
            logger.error("Transcription timed out after %.1fs", result.elapsed_s)
            return TranscriptionError(
                kind=ErrorKind.TRANSCRIPTION_TIMEOUT,
                message=ERROR_MESSAGES[ErrorKind.TRANSCRIPTION_TIMEOUT],
                exit_code=result.exit_code,
                stderr=result.stderr,
                raw_output=result.stdout,
            )

        if result.exit_code != 0:
            kind = EXIT_CODE_KINDS.get(result.exit_code, ErrorKind.GENERIC_FAILURE)
            logger.error("Transcription failed: exit %d (%s): %s", result.exit_code, kind.value, result.stderr.strip())
            return TranscriptionError(
                kind=kind,
                message=ERROR_MESSAGES[kind],
                exit_code=result.exit_code,
                stderr=result.stderr,
                raw_output=result.stdout,
            )

        try:
            transcription = parse_output(result.stdout)
        except OutputParseError as exc:
            logger.error("Invalid transcription output: %s", exc)
            return TranscriptionError(
                kind=ErrorKind.PARSE_ERROR,
                message=str(exc),
                exit_code=result.exit_code,
                stderr=result.stderr,
                raw_output=result.stdout,
            )

        logger.info(
            "Transcription completed: %d chars, language %s, %.1fs audio",
            len(transcription.text),
            transcription.language_code,
            transcription.duration_seconds,
        )
        return transcription
