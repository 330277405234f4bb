"""Transient flyout for dictation status messages."""

from __future__ import annotations

from enum import Enum

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore


class FlyoutKind(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_COLORS = {
    FlyoutKind.INFO: ("white", "rgba(0,0,0,190)"),
    FlyoutKind.SUCCESS: ("#7CFC9A", "rgba(0,0,0,190)"),
    FlyoutKind.WARNING: ("#FFC857", "rgba(0,0,0,200)"),
    FlyoutKind.ERROR: ("#FF6B6B", "rgba(0,0,0,210)"),
}

_DURATIONS_MS = {
    FlyoutKind.INFO: 1500,
    FlyoutKind.SUCCESS: 1500,
    FlyoutKind.WARNING: 3000,
    FlyoutKind.ERROR: 4000,
}


class FlyoutWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_ShowWithoutActivating, True)
        self.setFixedWidth(420)

        self._label = QLabel("")
        self._label.setWordWrap(True)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

        self._hide_timer = QTimer(self)
        self._hide_timer.setSingleShot(True)
        self._hide_timer.timeout.connect(self.hide)

    def show_message(self, text: str, kind: FlyoutKind = FlyoutKind.INFO, hide_after_ms: int | None = None) -> None:
        color, background = _COLORS[kind]
        self._label.setStyleSheet(
            f"color: {color}; font-size: 15px; padding: 12px 16px;"
            f"background: {background}; border-radius: 10px;"
        )
        self._label.setText(text)
        self._place_bottom_right()
        self.show()
        self._hide_timer.start(hide_after_ms or _DURATIONS_MS[kind])

    def _place_bottom_right(self) -> None:
        screen = QApplication.primaryScreen() if QApplication is not None else None
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        self.move(geom.right() - self.width() - 24, geom.bottom() - self.height() - 24)
