"""Text normalizer — canonical, filtered text for chunking and display.

``normalize()`` is pure and idempotent. Output shorter than
``MIN_TEXT_LENGTH`` characters is returned as ``""``; callers treat that as
insufficient content.
"""

from __future__ import annotations

import re
import unicodedata

MIN_TEXT_LENGTH = 10

# ZWSP, ZWNJ, ZWJ, LRM, RLM, word joiner + invisible operators, BOM, soft hyphen.
_INVISIBLE_RE = re.compile("[\u200b-\u200f\u2060-\u2064\ufeff\u00ad]")
_LINE_BREAK_RE = re.compile("\r\n|[\r\x0b\x0c\x1c\x1d\x1e\x85\u2028\u2029]")
_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def normalize(raw: str | None) -> str:
    """Return the canonical form of *raw*, or ``""`` if too little text remains."""
    if not raw or not isinstance(raw, str):
        return ""

    # Invisible characters go first so a joiner cannot keep a composable pair apart.
    text = _INVISIBLE_RE.sub("", raw)
    text = unicodedata.normalize("NFKC", text)
    text = _LINE_BREAK_RE.sub("\n", text)

    lines: list[str] = []
    for line in text.split("\n"):
        line = line.strip()
        if line and not _has_alnum(line):
            continue
        lines.append(_HORIZONTAL_WS_RE.sub(" ", line))

    text = _BLANK_RUN_RE.sub("\n\n", "\n".join(lines)).strip()

    if len(text) < MIN_TEXT_LENGTH:
        return ""
    return text


def _has_alnum(line: str) -> bool:
    return any(ch.isalnum() for ch in line)
