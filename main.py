"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime

from auto_paste import ClipboardWriter
from config import JsonConfigStore
from errors import ERROR_MESSAGES
from history import HistoryWriter
from hotkey import GlobalHotkeyAdapter
from interfaces import ClipboardService, HistoryStore
from logging_setup import configure_logging
from models import AppState, DictationCompleted, DictationFailed, HistoryEntry, NoSpeechDetected
from orchestrator import DictationOrchestrator
from overlay import FlyoutKind, FlyoutWindow
from recorder import SoundDeviceRecorder

try:
    from PySide6.QtCore import QObject, QSize, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

FALLBACK_ADVISORY_THRESHOLD = 3


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


STATE_ICONS = {
    AppState.IDLE: ("#888888", "Ready"),
    AppState.RECORDING: ("#FF4444", "Recording..."),
    AppState.PROCESSING: ("#FFB000", "Transcribing..."),
    AppState.POST_PROCESSING: ("#3C8DFF", "Formatting..."),
}


class UIBridge(QObject):
    state_signal = Signal(str)
    message_signal = Signal(str, str)  # text, flyout kind


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        data_root = self.config_store.get_data_root()
        configure_logging(data_root / "logs")

        self.flyout = FlyoutWindow()
        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.message_signal.connect(self._on_message_ui)

        self.whisper_config = self.config_store.get_whisper_config()
        self.clipboard: ClipboardService = ClipboardWriter()
        self.history: HistoryStore = HistoryWriter(data_root)
        self.consecutive_fallbacks = 0

        self.controller = self._build_controller()
        self.hotkey = GlobalHotkeyAdapter(hotkey=self.config_store.get_hotkey())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(STATE_ICONS[AppState.IDLE][0]))
        self.tray.setToolTip("Local Dictation — Ready")
        self._setup_menu()
        self.tray.show()

    def _build_controller(self) -> DictationOrchestrator:
        pp_config = self.config_store.get_post_processing_config()
        try:
            pp_config.validate()
        except ValueError as exc:
            logger.warning("Post-processing disabled, invalid configuration: %s", exc)
            pp_config.enabled = False
        return DictationOrchestrator(
            recorder=SoundDeviceRecorder(),
            whisper_config=self.whisper_config,
            post_processing_config=pp_config,
            on_state_change=self._on_state_change,
            on_completed=self._on_completed,
            on_failed=self._on_failed,
            on_no_speech=self._on_no_speech,
        )

    def _setup_menu(self) -> None:
        menu = QMenu()

        reload_action = QAction("Reload Glossary", menu)
        reload_action.triggered.connect(self._reload_glossary)
        menu.addAction(reload_action)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _reload_glossary(self) -> None:
        glossary = self.controller.reload_glossary()
        QMessageBox.information(None, "Glossary", f"{len(glossary)} entries loaded.")

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(None, "Hotkey", "pynput combination, e.g. <ctrl>+<shift>+d")
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        QMessageBox.information(None, "Saved", "Hotkey saved. Restart app to apply.")

    # ------------------------------------------------------------------
    # Orchestrator callbacks (worker threads → signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: AppState, to_state: AppState) -> None:
        self.ui.state_signal.emit(to_state.value)

    def _on_completed(self, signal: DictationCompleted) -> None:
        result = self.clipboard.write(signal.text)
        try:
            transcription = signal.transcription
            self.history.write(
                HistoryEntry(
                    created=datetime.now(),
                    text=signal.text,
                    language=transcription.language_code if transcription else self.whisper_config.language,
                    stt_model=self.whisper_config.model_path,
                    duration_seconds=transcription.duration_seconds if transcription else 0.0,
                    post_processed=self.controller.post_processing_enabled and not signal.used_fallback,
                )
            )
        except OSError as exc:
            logger.warning("History write failed, continuing: %s", exc)

        if signal.used_fallback:
            self.consecutive_fallbacks += 1
        elif self.controller.post_processing_enabled:
            self.consecutive_fallbacks = 0

        if not result.success:
            self.ui.message_signal.emit(f"Transcript saved, clipboard failed: {result.reason}", FlyoutKind.WARNING.value)
        elif self.consecutive_fallbacks >= FALLBACK_ADVISORY_THRESHOLD:
            self.ui.message_signal.emit(
                "Formatting keeps failing. Consider disabling post-processing.", FlyoutKind.WARNING.value
            )
        elif signal.used_fallback:
            self.ui.message_signal.emit("Formatting failed, original transcript copied", FlyoutKind.WARNING.value)
        else:
            self.ui.message_signal.emit("Transcript copied to clipboard", FlyoutKind.SUCCESS.value)

    def _on_failed(self, signal: DictationFailed) -> None:
        self.ui.message_signal.emit(ERROR_MESSAGES[signal.error_kind], FlyoutKind.ERROR.value)

    def _on_no_speech(self, signal: NoSpeechDetected) -> None:
        self.ui.message_signal.emit("No speech detected", FlyoutKind.INFO.value)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_state_change_ui(self, to_state: str) -> None:
        color, label = STATE_ICONS[AppState(to_state)]
        self.tray.setIcon(_create_icon(color))
        self.tray.setToolTip(f"Local Dictation — {label}")

    def _on_message_ui(self, text: str, kind: str) -> None:
        self.flyout.show_message(text, FlyoutKind(kind))

    # ------------------------------------------------------------------
    # Hotkey handlers
    # ------------------------------------------------------------------

    def _on_hotkey_press(self) -> None:
        self.controller.start_recording()

    def _on_hotkey_release(self) -> None:
        # The pipeline waits on external tools; keep it off the Qt main thread.
        threading.Thread(target=self.controller.stop_recording, daemon=True).start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        try:
            self.hotkey.start(on_press=self._on_hotkey_press, on_release=self._on_hotkey_release)
        except Exception as exc:
            self.flyout.show_message(f"Hotkey disabled: {exc}", FlyoutKind.ERROR)
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.controller.shutdown()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
