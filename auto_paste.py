"""Clipboard writer with optional auto paste into the focused window."""

from __future__ import annotations

import logging
import sys
import time

from models import PasteResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger(__name__)


class ClipboardWriter:
    def __init__(self, auto_paste: bool = False, max_retries: int = 1, retry_delay_s: float = 0.1) -> None:
        self._auto_paste = auto_paste
        self._max_retries = max_retries
        self._retry_delay_s = retry_delay_s

    def write(self, text: str) -> PasteResult:
        if not text.strip():
            return PasteResult(success=False, reason="empty text")
        if pyperclip is None:
            return PasteResult(success=False, reason="clipboard dependency missing")

        last_error = ""
        for attempt in range(self._max_retries + 1):
            try:
                pyperclip.copy(text)
                break
            except pyperclip.PyperclipException as exc:
                last_error = str(exc)
                logger.warning("Clipboard locked, attempt %d/%d: %s", attempt + 1, self._max_retries + 1, exc)
                time.sleep(self._retry_delay_s)
        else:
            return PasteResult(success=False, reason=f"clipboard unavailable: {last_error}")

        logger.info("Clipboard write succeeded (%d chars)", len(text))
        if self._auto_paste:
            return self._paste()
        return PasteResult(success=True, reason="ok")

    def _paste(self) -> PasteResult:
        if Controller is None or Key is None:
            return PasteResult(success=True, reason="copied, keyboard dependency missing")
        modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl
        try:
            keyboard = Controller()
            keyboard.press(modifier)
            keyboard.press("v")
            keyboard.release("v")
            keyboard.release(modifier)
        except Exception as exc:
            logger.warning("Auto paste failed, text kept in clipboard: %s", exc)
            return PasteResult(success=True, reason=f"copied, paste failed: {exc}")
        return PasteResult(success=True, reason="pasted", pasted=True)
