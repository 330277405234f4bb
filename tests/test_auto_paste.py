from __future__ import annotations

from unittest.mock import MagicMock

import pytest

import auto_paste
from auto_paste import ClipboardWriter


class _FlakyClipboard:
    class PyperclipException(Exception):
        pass

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.copied: list[str] = []

    def copy(self, text: str) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise self.PyperclipException("clipboard locked")
        self.copied.append(text)


def test_write_returns_failure_when_dependency_missing(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(auto_paste, "pyperclip", None)

    result = ClipboardWriter().write("hello")

    assert result.success is False
    assert result.pasted is False


def test_write_returns_failure_on_empty_text() -> None:
    result = ClipboardWriter().write("   ")

    assert result.success is False
    assert result.reason == "empty text"


def test_write_copies_text(monkeypatch) -> None:  # noqa: ANN001
    clipboard = _FlakyClipboard(failures=0)
    monkeypatch.setattr(auto_paste, "pyperclip", clipboard)

    result = ClipboardWriter().write("hello")

    assert result.success is True
    assert result.pasted is False
    assert clipboard.copied == ["hello"]


def test_write_retries_once_when_clipboard_locked(monkeypatch) -> None:  # noqa: ANN001
    clipboard = _FlakyClipboard(failures=1)
    monkeypatch.setattr(auto_paste, "pyperclip", clipboard)

    result = ClipboardWriter(retry_delay_s=0).write("hello")

    assert result.success is True
    assert clipboard.copied == ["hello"]


def test_write_gives_up_after_retries(monkeypatch) -> None:  # noqa: ANN001
    clipboard = _FlakyClipboard(failures=5)
    monkeypatch.setattr(auto_paste, "pyperclip", clipboard)

    result = ClipboardWriter(max_retries=1, retry_delay_s=0).write("hello")

    assert result.success is False
    assert "clipboard locked" in result.reason
    assert clipboard.failures == 3


@pytest.mark.parametrize("platform,modifier", [("linux", "ctrl"), ("darwin", "cmd")])
def test_auto_paste_sends_shortcut(monkeypatch, platform: str, modifier: str) -> None:  # noqa: ANN001
    controller = MagicMock()
    key = MagicMock()
    monkeypatch.setattr(auto_paste, "pyperclip", _FlakyClipboard(failures=0))
    monkeypatch.setattr(auto_paste, "Controller", lambda: controller)
    monkeypatch.setattr(auto_paste, "Key", key)
    monkeypatch.setattr(auto_paste.sys, "platform", platform)

    result = ClipboardWriter(auto_paste=True).write("hello")

    assert result.success is True
    assert result.pasted is True
    controller.press.assert_any_call(getattr(key, modifier))
    controller.press.assert_any_call("v")


def test_auto_paste_failure_keeps_clipboard_success(monkeypatch) -> None:  # noqa: ANN001
    controller = MagicMock()
    controller.press.side_effect = RuntimeError("no display")
    monkeypatch.setattr(auto_paste, "pyperclip", _FlakyClipboard(failures=0))
    monkeypatch.setattr(auto_paste, "Controller", lambda: controller)
    monkeypatch.setattr(auto_paste, "Key", MagicMock())

    result = ClipboardWriter(auto_paste=True).write("hello")

    assert result.success is True
    assert result.pasted is False
