from __future__ import annotations

import re
import unicodedata
from urllib.parse import urlparse

NON_LETTER_RE = re.compile(r"[^a-z]")
TITLE_STRIP_RE = re.compile(r"[^a-z\s]")
WHITESPACE_RE = re.compile(r"\s+")
DOTLESS = str.maketrans({"ı": "i", "ø": "o", "ß": "ss", "æ": "ae", "đ": "d", "ł": "l"})


def to_ascii(value: str) -> str:
    value = value.lower().translate(DOTLESS)
    decomposed = unicodedata.normalize("NFKD", value)
    return decomposed.encode("ascii", "ignore").decode("ascii")


def recommendation_key(category: str, title: str) -> str:
    """Identity of a recommendation across runs.

    Digits are dropped from the title so "12 images missing alt" and
    "3 images missing alt" describe the same issue.
    """
    cat = NON_LETTER_RE.sub("", to_ascii(category))
    text = re.sub(r"\d", "", to_ascii(title))
    text = TITLE_STRIP_RE.sub("", text).strip()
    text = WHITESPACE_RE.sub("-", text)
    return f"{cat}::{text}"


def host_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def truncate(value: str, limit: int = 60) -> str:
    return value if len(value) <= limit else value[:limit] + "..."
