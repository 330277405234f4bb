"""Microphone recorder adapter writing 16 kHz mono WAV files."""

from __future__ import annotations

import logging
import tempfile
import threading
import wave
from pathlib import Path
from typing import Any, Optional

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

EXPECTED_SAMPLE_RATE = 16000
EXPECTED_CHANNELS = 1
EXPECTED_SAMPLE_WIDTH = 2

# One dictation at a time, so every recording overwrites the same buffer.
BUFFER_FILE_NAME = "rec_buffer.wav"


def validate_wav(path: Path) -> tuple[bool, str]:
    """Check that ``path`` is a PCM WAV the speech-to-text tool accepts."""
    if not path.is_file():
        return False, f"File not found: {path}"
    try:
        with wave.open(str(path), "rb") as wf:
            if wf.getcomptype() != "NONE":
                return False, "Invalid WAV file: not PCM"
            if wf.getframerate() != EXPECTED_SAMPLE_RATE:
                return False, f"Invalid sample rate {wf.getframerate()}, expected {EXPECTED_SAMPLE_RATE}"
            if wf.getnchannels() != EXPECTED_CHANNELS:
                return False, f"Invalid channel count {wf.getnchannels()}, expected mono"
            if wf.getsampwidth() != EXPECTED_SAMPLE_WIDTH:
                return False, f"Invalid sample width {wf.getsampwidth() * 8} bit, expected 16 bit"
    except (wave.Error, EOFError, OSError) as exc:
        return False, f"Invalid WAV file: {exc}"
    return True, ""


class SoundDeviceRecorder:
    def __init__(
        self,
        output_dir: Optional[Path] = None,
        sample_rate: int = EXPECTED_SAMPLE_RATE,
        channels: int = EXPECTED_CHANNELS,
        chunk_ms: int = 100,
    ) -> None:
        self.output_dir = output_dir or Path(tempfile.gettempdir()) / "local_dictation"
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._chunks: list[bytes] = []

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._chunks = []
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=blocksize,
                callback=self._on_audio,
            )
            self._stream.start()
            self._running = True
            logger.debug("Recording started (%d Hz, %d ch)", self.sample_rate, self.channels)

    def stop(self) -> Optional[Path]:
        """Close the stream and return the WAV path, or None when nothing was captured."""
        with self._lock:
            if not self._running:
                return None
            self._running = False
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None
            pcm = b"".join(self._chunks)
            self._chunks = []

        if not pcm:
            logger.info("Recording stopped without audio")
            return None
        return self._write_wav(pcm)

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or np is None:
            return
        self._chunks.append(np.asarray(indata, dtype=np.int16).tobytes())

    def _write_wav(self, pcm: bytes) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / BUFFER_FILE_NAME
        with wave.open(str(path), "wb") as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(EXPECTED_SAMPLE_WIDTH)
            wf.setframerate(self.sample_rate)
            wf.writeframes(pcm)
        logger.info("Recording saved to %s (%d bytes)", path, len(pcm))
        return path
