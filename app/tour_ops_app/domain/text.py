"""Name normalization shared by master-data search and import matching."""

from __future__ import annotations

import re
import unicodedata

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def remove_diacritics(text: str | None) -> str:
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", str(text))
    stripped = _COMBINING_MARKS.sub("", decomposed)
    return stripped.replace("đ", "d").replace("Đ", "D")


def normalize_entity_name(text: str | None) -> str:
    """Accent-free, lowercase, punctuation-free form used as the exact-match key.

    >>> normalize_entity_name("  Việt Á, Travel! ")
    'viet a travel'
    """
    value = remove_diacritics(text).strip().lower()
    value = _NON_WORD.sub("", value)
    value = _WHITESPACE.sub(" ", value)
    return value.strip()


def generate_search_keywords(name: str | None) -> list[str]:
    normalized = normalize_entity_name(name)
    if not normalized:
        return []
    words = normalized.split(" ")
    keywords = [normalized.replace(" ", "")]
    keywords.extend(word for word in words if len(word) > 1)
    if len(words) > 1:
        keywords.append("".join(word[0] for word in words if word))
    return list(dict.fromkeys(keywords))
