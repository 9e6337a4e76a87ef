"""Text helpers for catalog fields that arrive with embedded HTML."""

from __future__ import annotations

import re
import unicodedata

from bs4 import BeautifulSoup

_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[\W_]+", flags=re.UNICODE)


def strip_html(value: str | None) -> str:
    """Return plain text from a TourAPI HTML fragment (``<br>``, links, entities)."""

    if not value:
        return ""
    soup = BeautifulSoup(value, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    text = soup.get_text()
    lines = [_WHITESPACE_RE.sub(" ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def clean_intro_info(item: dict) -> dict:
    """Drop identifier echoes and empty values from a ``detailIntro2`` item."""

    cleaned: dict[str, str] = {}
    for key, value in item.items():
        if key in {"contentid", "contenttypeid"}:
            continue
        if value is None or str(value).strip() == "":
            continue
        cleaned[key] = str(value).strip()
    return cleaned


def normalize_title(value: str | None) -> str:
    """Normalize a place name for exact comparison.

    NFKC folds full-width characters, casefold handles Latin case, and all
    whitespace and punctuation is dropped.
    """

    if not value:
        return ""
    if "<" in value or "&" in value:
        value = strip_html(value)
    text = unicodedata.normalize("NFKC", value).casefold()
    return _NON_WORD_RE.sub("", text)
