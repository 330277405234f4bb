"""Shared error kinds, user-facing messages and seam exceptions."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from models import AppState
    from process_invoker import ProcessInvocationResult


class ErrorKind(str, Enum):
    LAUNCH_FAILED = "LAUNCH_FAILED"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    DEVICE_ERROR = "DEVICE_ERROR"
    TRANSCRIPTION_TIMEOUT = "TRANSCRIPTION_TIMEOUT"
    INVALID_INPUT = "INVALID_INPUT"
    PARSE_ERROR = "PARSE_ERROR"
    GENERIC_FAILURE = "GENERIC_FAILURE"
    GPU_FAILURE = "GPU_FAILURE"
    CANCELLED = "CANCELLED"


ERROR_MESSAGES = {
    ErrorKind.LAUNCH_FAILED: "Speech-to-text tool could not be started.",
    ErrorKind.MODEL_NOT_FOUND: "Speech model not found, check the model path.",
    ErrorKind.DEVICE_ERROR: "Audio or compute device is not available.",
    ErrorKind.TRANSCRIPTION_TIMEOUT: "Transcription took too long and was stopped.",
    ErrorKind.INVALID_INPUT: "The recording could not be read.",
    ErrorKind.PARSE_ERROR: "Speech-to-text output format is invalid.",
    ErrorKind.GENERIC_FAILURE: "Transcription failed.",
    ErrorKind.GPU_FAILURE: "GPU processing failed, retried on CPU.",
    ErrorKind.CANCELLED: "Dictation was cancelled.",
}


class DictationError(Exception):
    """Base class for exceptions crossing module seams."""


class InvalidTransition(DictationError):
    def __init__(self, current: AppState, target: AppState) -> None:
        super().__init__(f"invalid state transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


class LaunchFailed(DictationError):
    """The executable could not be started, so no process ever ran."""

    def __init__(self, executable: str, reason: str) -> None:
        super().__init__(f"cannot launch {executable}: {reason}")
        self.executable = executable
        self.reason = reason


class ProcessCancelled(DictationError):
    """An external cancellation stopped the process before it finished.

    ``result`` holds whatever stdout/stderr was captured before the kill.
    """

    def __init__(self, result: ProcessInvocationResult) -> None:
        super().__init__("process cancelled")
        self.result = result
