"""Abbreviation glossary loading and prompt formatting.

File format, one entry per line::

    # comment
    asap = as soon as possible

Blank lines, comments and lines without ``=`` are skipped. Only the first
``MAX_GLOSSARY_ENTRIES`` valid entries are kept.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union

logger = logging.getLogger(__name__)

MAX_GLOSSARY_ENTRIES = 500

EMPTY_GLOSSARY: Mapping[str, str] = MappingProxyType({})


def parse_glossary_lines(lines: list[str]) -> dict[str, str]:
    entries: dict[str, str] = {}
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = (part.strip() for part in stripped.split("=", 1))
        if not key or not value:
            continue
        if key not in entries and len(entries) >= MAX_GLOSSARY_ENTRIES:
            logger.warning("Glossary truncated at %d entries", MAX_GLOSSARY_ENTRIES)
            break
        entries[key] = value
    return entries


def load_glossary(path: Optional[Union[str, Path]]) -> Mapping[str, str]:
    """Load a read-only abbreviation mapping; missing or unreadable files give an empty one."""
    if not path:
        return EMPTY_GLOSSARY
    glossary_path = Path(path)
    if not glossary_path.is_file():
        logger.info("Glossary file %s not found, using empty glossary", glossary_path)
        return EMPTY_GLOSSARY
    try:
        lines = glossary_path.read_text(encoding="utf-8-sig").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Failed to load glossary %s: %s", glossary_path, exc)
        return EMPTY_GLOSSARY

    entries = parse_glossary_lines(lines)
    logger.info("Glossary loaded: %d entries from %s", len(entries), glossary_path)
    return MappingProxyType(entries)


def format_glossary_for_prompt(glossary: Optional[Mapping[str, str]]) -> str:
    if not glossary:
        return ""
    lines = ["", "", "APPLY THESE ABBREVIATIONS:"]
    lines.extend(f"{key} = {value}" for key, value in glossary.items())
    return "\n".join(lines) + "\n"
