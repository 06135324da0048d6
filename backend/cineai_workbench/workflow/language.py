"""Translation direction heuristic shared by every translate action."""

from __future__ import annotations

import re

from .models import Language

# CJK Unified Ideographs, U+4E00..U+9FFF.
_CJK_RE = re.compile("[一-鿿]")


def contains_cjk(text: str) -> bool:
    return bool(_CJK_RE.search(text or ""))


def translation_target(text: str) -> Language | None:
    """Language to translate ``text`` into, or None when there is nothing to translate."""
    if not text or not text.strip():
        return None
    return Language.EN if contains_cjk(text) else Language.ZH
