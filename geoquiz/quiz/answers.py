"""
Answer validation for name and point questions.

Typed names are compared after normalization (case, surrounding
whitespace, accents and hyphens are ignored), so "Súdwest-Fryslân",
" sudwestfryslan" and "SUDWEST-FRYSLAN" all match each other.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable

GIVE_UP_INPUT = "?"


def normalize_answer(text: str) -> str:
    """Lowercase, trim, strip diacritics and drop hyphens."""
    decomposed = unicodedata.normalize("NFD", text.lower().strip())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.replace("-", "")


def matches_name(answer: str, candidates: Iterable[str]) -> bool:
    """True if the normalized answer equals any normalized candidate."""
    normalized = normalize_answer(answer)
    if not normalized:
        return False
    return any(normalize_answer(candidate) == normalized for candidate in candidates if candidate)


def matches_point(clicked_id: str, target_id: str) -> bool:
    """Point mode: the clicked item must be the asked item."""
    return clicked_id == target_id


def is_give_up(answer: str) -> bool:
    return answer.strip() == GIVE_UP_INPUT
