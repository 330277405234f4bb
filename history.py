"""Markdown history files, one per dictation.

Layout: ``<data_root>/history/YYYY/YYYY-MM/YYYY-MM-DD/YYYYMMDD_HHMMSSfff_<slug>.md``
"""

from __future__ import annotations

import logging
import re
import unicodedata
import uuid
from pathlib import Path

from models import HistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_SLUG = "transcript"

_UMLAUTS = str.maketrans({"ä": "a", "ö": "o", "ü": "u", "Ä": "A", "Ö": "O", "Ü": "U", "ß": "ss"})


def slugify(text: str, max_length: int = 50) -> str:
    if not text or not text.strip():
        return DEFAULT_SLUG
    normalized = unicodedata.normalize("NFKD", text.translate(_UMLAUTS))
    normalized = "".join(ch for ch in normalized if not unicodedata.combining(ch)).lower()
    normalized = re.sub(r"[\s_]+", "-", normalized)
    normalized = re.sub(r"[^a-z0-9\-]", "", normalized)
    normalized = re.sub(r"-+", "-", normalized).strip("-")
    if len(normalized) > max_length:
        cut = normalized[:max_length]
        # break at a word boundary when one exists in the back half
        boundary = cut.rfind("-")
        normalized = cut[:boundary] if boundary > max_length // 2 else cut
    return normalized.strip("-") or DEFAULT_SLUG


def to_markdown(entry: HistoryEntry) -> str:
    created = entry.created.astimezone()
    lines = [
        "---",
        f"created: {created.isoformat(timespec='seconds')}",
        f"lang: {entry.language}",
        f"stt_model: {entry.stt_model}",
        f"duration_sec: {entry.duration_seconds:.1f}",
        f"post_processed: {str(entry.post_processed).lower()}",
        "---",
        "",
        f"# Dictation – {created.strftime('%d.%m.%Y %H:%M')}",
        "",
        entry.text,
        "",
    ]
    return "\n".join(lines)


class HistoryWriter:
    def __init__(self, data_root: Path) -> None:
        self._data_root = data_root

    def directory_for(self, entry: HistoryEntry) -> Path:
        created = entry.created.astimezone()
        return (
            self._data_root
            / "history"
            / created.strftime("%Y")
            / created.strftime("%Y-%m")
            / created.strftime("%Y-%m-%d")
        )

    def write(self, entry: HistoryEntry) -> Path:
        directory = self.directory_for(entry)
        directory.mkdir(parents=True, exist_ok=True)
        stamp = entry.created.astimezone().strftime("%Y%m%d_%H%M%S%f")[:-3]
        path = self._unique_path(directory / f"{stamp}_{slugify(entry.text)}.md")
        path.write_text(to_markdown(entry), encoding="utf-8")
        logger.info("History file created: %s", path)
        return path

    @staticmethod
    def _unique_path(path: Path) -> Path:
        if not path.exists():
            return path
        for counter in range(2, 1000):
            candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
            if not candidate.exists():
                return candidate
        return path.with_name(f"{path.stem}_{uuid.uuid4().hex}{path.suffix}")
