"""State-machine based dictation pipeline orchestration."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Mapping, Optional, Union

from config import PostProcessingConfig, WhisperConfig
from errors import ERROR_MESSAGES, ErrorKind, ProcessCancelled
from glossary import EMPTY_GLOSSARY, load_glossary
from interfaces import PostProcessor, Recorder, Transcriber
from models import (
    AppState,
    DictationCompleted,
    DictationFailed,
    NoSpeechDetected,
    OutputMode,
    StageTimings,
    StateChangedEvent,
    TranscriptionError,
)
from post_processing import PostProcessingAdapter
from process_invoker import ProcessInvoker
from recorder import validate_wav
from state_machine import StateMachine
from transcription import TranscriptionAdapter

logger = logging.getLogger(__name__)

DictationSignal = Union[DictationCompleted, DictationFailed, NoSpeechDetected]

StateCallback = Callable[[AppState, AppState], None]
CompletedCallback = Callable[[DictationCompleted], None]
FailedCallback = Callable[[DictationFailed], None]
NoSpeechCallback = Callable[[NoSpeechDetected], None]
IgnoredCallback = Callable[[str, AppState], None]


class DictationOrchestrator:
    """Runs one dictation pipeline per recording and reports it once.

    Only one pipeline may be away from IDLE at a time; events that arrive
    while a pipeline is running are rejected, never queued.
    """

    def __init__(
        self,
        recorder: Recorder,
        whisper_config: WhisperConfig,
        post_processing_config: Optional[PostProcessingConfig] = None,
        state_machine: Optional[StateMachine] = None,
        transcriber: Optional[Transcriber] = None,
        post_processor: Optional[PostProcessor] = None,
        glossary: Optional[Mapping[str, str]] = None,
        shutdown_event: Optional[threading.Event] = None,
        on_state_change: Optional[StateCallback] = None,
        on_completed: Optional[CompletedCallback] = None,
        on_failed: Optional[FailedCallback] = None,
        on_no_speech: Optional[NoSpeechCallback] = None,
        on_ignored: Optional[IgnoredCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._whisper_config = whisper_config
        self._pp_config = post_processing_config or PostProcessingConfig()
        self._shutdown_event = shutdown_event or threading.Event()
        self._state_machine = state_machine or StateMachine()

        invoker = ProcessInvoker()
        self._transcriber = transcriber or TranscriptionAdapter(invoker, self._shutdown_event)
        self._post_processor = post_processor or PostProcessingAdapter(
            self._pp_config, invoker, self._shutdown_event
        )

        self._on_state_change = on_state_change
        self._on_completed = on_completed
        self._on_failed = on_failed
        self._on_no_speech = on_no_speech
        self._on_ignored = on_ignored

        self._lock = threading.RLock()
        self._state_machine.subscribe(self._handle_transition)

        if glossary is not None:
            self._glossary = glossary
        elif self._pp_config.use_glossary:
            self._glossary = load_glossary(self._pp_config.glossary_path)
        else:
            self._glossary = EMPTY_GLOSSARY

    @property
    def state(self) -> AppState:
        return self._state_machine.state

    @property
    def glossary(self) -> Mapping[str, str]:
        return self._glossary

    @property
    def post_processing_enabled(self) -> bool:
        return self._pp_config.enabled

    def reload_glossary(self, path: Optional[Union[str, Path]] = None) -> Mapping[str, str]:
        self._glossary = load_glossary(path or self._pp_config.glossary_path)
        return self._glossary

    def start_recording(self) -> bool:
        with self._lock:
            if self.state != AppState.IDLE:
                self._ignore("start_recording")
                return False
            self._state_machine.transition_to(AppState.RECORDING)
            try:
                self._recorder.start()
            except Exception as exc:
                logger.error("Recorder failed to start: %s", exc)
                self._abort(ErrorKind.INVALID_INPUT, f"recording failed: {exc}")
                return False
            return True

    def stop_recording(self) -> Optional[DictationSignal]:
        """Stop the recorder and run the pipeline on the captured audio.

        Blocks until the pipeline finishes; call it off the UI thread.
        """
        with self._lock:
            if self.state != AppState.RECORDING:
                self._ignore("stop_recording")
                return None
            try:
                audio_path = self._recorder.stop()
            except Exception as exc:
                logger.error("Recorder failed to stop: %s", exc)
                return self._abort(ErrorKind.INVALID_INPUT, f"recording failed: {exc}")
            if audio_path is None:
                return self._abort(ErrorKind.INVALID_INPUT, "no audio captured")
            valid, reason = validate_wav(Path(audio_path))
            if not valid:
                logger.error("Recorder produced an unusable file %s: %s", audio_path, reason)
                return self._abort(ErrorKind.INVALID_INPUT, reason)
            self._state_machine.transition_to(AppState.PROCESSING)

        return self._run_pipeline(Path(audio_path))

    def process_audio(self, audio_path: Union[str, Path]) -> Optional[DictationSignal]:
        """Run the pipeline for an already recorded file (recording-stop event)."""
        with self._lock:
            if self.state != AppState.RECORDING:
                self._ignore("process_audio")
                return None
            self._state_machine.transition_to(AppState.PROCESSING)

        return self._run_pipeline(Path(audio_path))

    def shutdown(self) -> None:
        """Kill in-flight tools and drop an unfinished recording."""
        self._shutdown_event.set()
        with self._lock:
            if self.state != AppState.RECORDING:
                return
            try:
                self._recorder.stop()
            except Exception as exc:  # pragma: no cover - best effort on exit
                logger.warning("Recorder stop failed during shutdown: %s", exc)
            self._abort(ErrorKind.CANCELLED, "app shutdown")

    def _run_pipeline(self, audio_path: Path) -> DictationSignal:
        started = time.monotonic()
        try:
            signal = self._pipeline(audio_path, started)
        except ProcessCancelled:
            logger.warning("Dictation cancelled while transcribing")
            signal = self._settle(DictationFailed(ErrorKind.CANCELLED, ERROR_MESSAGES[ErrorKind.CANCELLED]))
        except Exception as exc:
            logger.exception("Dictation pipeline crashed")
            signal = self._settle(DictationFailed(ErrorKind.GENERIC_FAILURE, str(exc)))
        self._emit(signal)
        return signal

    def _pipeline(self, audio_path: Path, started: float) -> DictationSignal:
        whisper = self._whisper_config
        outcome = self._transcriber.transcribe(
            audio_path,
            whisper.language,
            whisper.model_path,
            whisper.cli_path,
            whisper.timeout_s,
        )
        transcription_s = time.monotonic() - started

        if isinstance(outcome, TranscriptionError):
            return self._settle(DictationFailed(outcome.kind, outcome.message or ERROR_MESSAGES[outcome.kind]))

        if outcome.is_empty:
            logger.info("No speech detected in %s", audio_path)
            return self._settle(NoSpeechDetected(duration_seconds=outcome.duration_seconds))

        if not self._pp_config.enabled:
            timings = StageTimings(transcription_s=transcription_s, total_s=time.monotonic() - started)
            return self._settle(
                DictationCompleted(
                    text=outcome.text,
                    mode=OutputMode.PLAIN,
                    used_fallback=False,
                    timings=timings,
                    transcription=outcome,
                )
            )

        self._state_machine.transition_to(AppState.POST_PROCESSING)
        result = self._post_processor.process(outcome.text, self._glossary)
        timings = StageTimings(
            transcription_s=transcription_s,
            post_processing_s=result.elapsed_s,
            total_s=time.monotonic() - started,
        )
        return self._settle(
            DictationCompleted(
                text=result.text,
                mode=result.mode,
                used_fallback=not result.succeeded,
                timings=timings,
                transcription=outcome,
            )
        )

    def _settle(self, signal: DictationSignal) -> DictationSignal:
        with self._lock:
            self._return_to_idle()
        return signal

    def _abort(self, kind: ErrorKind, message: str) -> DictationFailed:
        signal = self._settle(DictationFailed(kind, message))
        self._emit(signal)
        return signal

    def _return_to_idle(self) -> None:
        if self.state == AppState.RECORDING:
            self._state_machine.transition_to(AppState.PROCESSING)
        self._state_machine.transition_to(AppState.IDLE)

    def _emit(self, signal: DictationSignal) -> None:
        if isinstance(signal, DictationCompleted):
            logger.info(
                "Dictation completed: mode=%s fallback=%s total=%.2fs",
                signal.mode.value,
                signal.used_fallback,
                signal.timings.total_s,
            )
            self._safe_notify(self._on_completed, signal)
        elif isinstance(signal, NoSpeechDetected):
            self._safe_notify(self._on_no_speech, signal)
        else:
            logger.warning("Dictation failed: %s %s", signal.error_kind.value, signal.message)
            self._safe_notify(self._on_failed, signal)

    @staticmethod
    def _safe_notify(callback: Optional[Callable[..., None]], signal: DictationSignal) -> None:
        if callback is None:
            return
        try:
            callback(signal)
        except Exception:
            logger.exception("Signal handler failed for %s", type(signal).__name__)

    def _ignore(self, event: str) -> None:
        state = self.state
        logger.info("Ignoring %s while %s", event, state.value)
        if self._on_ignored:
            self._on_ignored(event, state)

    def _handle_transition(self, event: StateChangedEvent) -> None:
        if self._on_state_change:
            self._on_state_change(event.old_state, event.new_state)
