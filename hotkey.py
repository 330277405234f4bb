"""Press-and-hold global hotkey adapter based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


class GlobalHotkeyAdapter:
    """Calls ``on_press`` once when the whole combination is held down and
    ``on_release`` once when any key of it is let go."""

    def __init__(self, hotkey: str = "<ctrl>+<shift>+d") -> None:
        self._hotkey = hotkey
        self._combo: set[Any] = set()
        self._held: set[Any] = set()
        self._active = False
        self._listener: Optional[Any] = None
        self._lock = threading.Lock()

    def start(self, on_press: Callable[[], None], on_release: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._combo = set(keyboard.HotKey.parse(self._hotkey))
        listener: Any = None

        def _on_press(key: Any) -> None:
            canonical = listener.canonical(key)
            with self._lock:
                if canonical not in self._combo:
                    return
                self._held.add(canonical)
                if self._active or self._held != self._combo:
                    return
                self._active = True
            on_press()

        def _on_release(key: Any) -> None:
            canonical = listener.canonical(key)
            with self._lock:
                self._held.discard(canonical)
                if not self._active or canonical not in self._combo:
                    return
                self._active = False
            on_release()

        listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        self._listener = listener
        listener.start()
        logger.info("Hotkey %s registered", self._hotkey)

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
