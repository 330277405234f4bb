"""Tests for TranscriptionAdapter."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Optional

import pytest

from errors import ErrorKind, LaunchFailed, ProcessCancelled
from models import TranscriptionError, TranscriptionResult
from process_invoker import ProcessInvocationResult, ProcessInvocationSpec
from transcription import TranscriptionAdapter, parse_output


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class FakeInvoker:
    def __init__(self, result: Optional[ProcessInvocationResult] = None, error: Optional[Exception] = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[ProcessInvocationSpec, Optional[threading.Event]]] = []

    def invoke(self, spec, cancel_event=None):  # noqa: ANN001
        self.calls.append((spec, cancel_event))
        if self.error is not None:
            raise self.error
        return self.result


def _result(exit_code: int = 0, stdout: str = "", stderr: str = "", timed_out: bool = False) -> ProcessInvocationResult:
    return ProcessInvocationResult(exit_code=exit_code, stdout=stdout, stderr=stderr, elapsed_s=0.1, timed_out=timed_out)


@pytest.fixture()
def audio(tmp_path: Path) -> Path:
    path = tmp_path / "rec.wav"
    path.write_bytes(b"RIFF")
    return path


def _transcribe(adapter: TranscriptionAdapter, audio: Path):  # noqa: ANN202
    return adapter.transcribe(audio, "de", "/models/ggml-small.bin", "whisper-cli", 60)


GOOD_OUTPUT = json.dumps(
    {
        "text": "Hallo Welt",
        "language": "de",
        "duration_sec": 2.5,
        "segments": [{"start": 0.0, "end": 2.5, "text": "Hallo Welt"}],
        "meta": {"model": "small"},
        "unknown": "ignored",
    }
)


# ---------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------

def test_build_invocation_is_deterministic(audio: Path) -> None:
    first = TranscriptionAdapter.build_invocation(audio, "en", "/m.bin", "/bin/whisper", 30)
    second = TranscriptionAdapter.build_invocation(audio, "en", "/m.bin", "/bin/whisper", 30)

    assert first == second
    assert first.executable_path == "/bin/whisper"
    assert first.arguments == ("--model", "/m.bin", "--language", "en", "--output-format", "json", str(audio))
    assert first.timeout_s == 30


def test_cancel_event_is_passed_to_invoker(audio: Path) -> None:
    cancel = threading.Event()
    invoker = FakeInvoker(_result(stdout=GOOD_OUTPUT))

    _transcribe(TranscriptionAdapter(invoker, cancel), audio)

    assert invoker.calls[0][1] is cancel


# ---------------------------------------------------------------
# Success
# ---------------------------------------------------------------

def test_success_parses_result(audio: Path) -> None:
    outcome = _transcribe(TranscriptionAdapter(FakeInvoker(_result(stdout=GOOD_OUTPUT))), audio)

    assert isinstance(outcome, TranscriptionResult)
    assert outcome.text == "Hallo Welt"
    assert outcome.language_code == "de"
    assert outcome.duration_seconds == 2.5
    assert outcome.segments is not None and outcome.segments[0].end == 2.5
    assert outcome.meta == {"model": "small"}


def test_empty_text_is_success_not_error(audio: Path) -> None:
    stdout = json.dumps({"text": "", "language": "de", "duration_sec": 1})
    outcome = _transcribe(TranscriptionAdapter(FakeInvoker(_result(stdout=stdout))), audio)

    assert isinstance(outcome, TranscriptionResult)
    assert outcome.is_empty
    assert outcome.segments is None


# ---------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------

@pytest.mark.parametrize(
    "exit_code,kind",
    [
        (1, ErrorKind.GENERIC_FAILURE),
        (2, ErrorKind.MODEL_NOT_FOUND),
        (3, ErrorKind.DEVICE_ERROR),
        (4, ErrorKind.TRANSCRIPTION_TIMEOUT),
        (5, ErrorKind.INVALID_INPUT),
        (42, ErrorKind.GENERIC_FAILURE),
        (-9, ErrorKind.GENERIC_FAILURE),
    ],
)
def test_exit_codes_map_to_error_kinds(audio: Path, exit_code: int, kind: ErrorKind) -> None:
    invoker = FakeInvoker(_result(exit_code=exit_code, stderr="boom"))
    outcome = _transcribe(TranscriptionAdapter(invoker), audio)

    assert isinstance(outcome, TranscriptionError)
    assert outcome.kind == kind
    assert outcome.exit_code == exit_code
    assert outcome.stderr == "boom"


def test_timeout_wins_over_exit_code(audio: Path) -> None:
    invoker = FakeInvoker(_result(exit_code=-9, timed_out=True))
    outcome = _transcribe(TranscriptionAdapter(invoker), audio)

    assert isinstance(outcome, TranscriptionError)
    assert outcome.kind == ErrorKind.TRANSCRIPTION_TIMEOUT


def test_launch_failure_is_typed(audio: Path) -> None:
    invoker = FakeInvoker(error=LaunchFailed("whisper-cli", "No such file"))
    outcome = _transcribe(TranscriptionAdapter(invoker), audio)

    assert isinstance(outcome, TranscriptionError)
    assert outcome.kind == ErrorKind.LAUNCH_FAILED


def test_missing_audio_file_is_invalid_input(tmp_path: Path) -> None:
    invoker = FakeInvoker(_result(stdout=GOOD_OUTPUT))
    outcome = _transcribe(TranscriptionAdapter(invoker), tmp_path / "missing.wav")

    assert isinstance(outcome, TranscriptionError)
    assert outcome.kind == ErrorKind.INVALID_INPUT
    assert invoker.calls == []


def test_cancellation_propagates(audio: Path) -> None:
    invoker = FakeInvoker(error=ProcessCancelled(_result(exit_code=-9)))

    with pytest.raises(ProcessCancelled):
        _transcribe(TranscriptionAdapter(invoker), audio)


# ---------------------------------------------------------------
# Parse errors
# ---------------------------------------------------------------

@pytest.mark.parametrize(
    "stdout",
    [
        "not json at all",
        "[]",
        json.dumps({"language": "de", "duration_sec": 1}),
        json.dumps({"text": "hi", "duration_sec": 1}),
        json.dumps({"text": "hi", "language": "de"}),
        json.dumps({"text": 5, "language": "de", "duration_sec": 1}),
        json.dumps({"text": "hi", "language": "de", "duration_sec": "long"}),
        json.dumps({"text": "hi", "language": "de", "duration_sec": 1, "segments": [{"start": 0}]}),
        json.dumps({"text": "hi", "language": "de", "duration_sec": 1, "meta": [1, 2]}),
    ],
)
def test_invalid_output_is_parse_error_with_raw_content(audio: Path, stdout: str) -> None:
    outcome = _transcribe(TranscriptionAdapter(FakeInvoker(_result(stdout=stdout))), audio)

    assert isinstance(outcome, TranscriptionError)
    assert outcome.kind == ErrorKind.PARSE_ERROR
    assert outcome.raw_output == stdout


def test_parse_output_accepts_integer_duration() -> None:
    result = parse_output(json.dumps({"text": "a", "language": "en", "duration_sec": 3}))

    assert result.duration_seconds == 3.0
