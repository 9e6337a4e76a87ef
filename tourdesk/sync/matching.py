"""Pluggable rules pairing a local record with an English catalog candidate.

There is no fuzzy scoring. A matcher either finds exactly one candidate by
an exact criterion or reports no match.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Mapping, Protocol, Sequence

from tourdesk.catalog.models import ExternalRecord, LocalRecord
from tourdesk.catalog.text import normalize_title

logger = logging.getLogger("tourdesk.matching")


class NameMatcher(Protocol):
    def match(
        self,
        local: LocalRecord,
        candidates: Sequence[ExternalRecord],
        titles: Mapping[str, str] | None = None,
    ) -> ExternalRecord | None: ...


def index_titles(candidates: Iterable[ExternalRecord]) -> dict[str, str]:
    """Normalized title per candidate id, computed once per candidate list."""

    return {candidate.source_id: normalize_title(candidate.title) for candidate in candidates}


def _candidate_title(candidate: ExternalRecord, titles: Mapping[str, str] | None) -> str:
    if titles is not None and candidate.source_id in titles:
        return titles[candidate.source_id]
    return normalize_title(candidate.title)


class SharedIdMatcher:
    """Some places keep the same content id in both catalogs."""

    def match(
        self,
        local: LocalRecord,
        candidates: Sequence[ExternalRecord],
        titles: Mapping[str, str] | None = None,
    ) -> ExternalRecord | None:
        for candidate in candidates:
            if candidate.source_id == local.content_id:
                return candidate
        return None


class EquivalenceMatcher:
    """Operator-maintained table of Korean title -> English title or content id."""

    def __init__(self, equivalences: Mapping[str, str] | None = None) -> None:
        self._table = {
            normalize_title(korean): str(english).strip()
            for korean, english in (equivalences or {}).items()
            if normalize_title(korean) and str(english).strip()
        }

    @classmethod
    def from_file(cls, path: Path | None) -> "EquivalenceMatcher":
        if path is None:
            return cls()
        path = Path(path)
        if not path.exists():
            logger.warning("English equivalence file %s not found; continuing without it", path)
            return cls()
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError("Expected a JSON object mapping Korean titles to English titles or ids")
        return cls(data)

    def __len__(self) -> int:
        return len(self._table)

    def match(
        self,
        local: LocalRecord,
        candidates: Sequence[ExternalRecord],
        titles: Mapping[str, str] | None = None,
    ) -> ExternalRecord | None:
        target = self._table.get(normalize_title(local.title))
        if not target:
            return None
        normalized_target = normalize_title(target)
        for candidate in candidates:
            if candidate.source_id == target or _candidate_title(candidate, titles) == normalized_target:
                return candidate
        return None


class ExactTitleMatcher:
    """Titles equal after normalization (e.g. ``KAIST`` / ``Kaist``)."""

    def match(
        self,
        local: LocalRecord,
        candidates: Sequence[ExternalRecord],
        titles: Mapping[str, str] | None = None,
    ) -> ExternalRecord | None:
        wanted = normalize_title(local.title)
        if not wanted:
            return None
        hits = [candidate for candidate in candidates if _candidate_title(candidate, titles) == wanted]
        return hits[0] if len(hits) == 1 else None


class SubstringMatcher:
    """One normalized title contains the other, and only one candidate qualifies."""

    def __init__(self, min_length: int = 4) -> None:
        self.min_length = min_length

    def match(
        self,
        local: LocalRecord,
        candidates: Sequence[ExternalRecord],
        titles: Mapping[str, str] | None = None,
    ) -> ExternalRecord | None:
        wanted = normalize_title(local.title)
        if len(wanted) < self.min_length:
            return None
        hits = []
        for candidate in candidates:
            title = _candidate_title(candidate, titles)
            if len(title) < self.min_length:
                continue
            if wanted in title or title in wanted:
                hits.append(candidate)
        return hits[0] if len(hits) == 1 else None


class MatcherChain:
    """Try each matcher in order; the first hit wins."""

    def __init__(self, matchers: Sequence[NameMatcher]) -> None:
        self.matchers = list(matchers)

    def match(
        self,
        local: LocalRecord,
        candidates: Sequence[ExternalRecord],
        titles: Mapping[str, str] | None = None,
    ) -> ExternalRecord | None:
        for matcher in self.matchers:
            found = matcher.match(local, candidates, titles)
            if found is not None:
                return found
        return None


def default_matcher(equivalences: EquivalenceMatcher | None = None) -> MatcherChain:
    return MatcherChain(
        [
            SharedIdMatcher(),
            equivalences or EquivalenceMatcher(),
            ExactTitleMatcher(),
            SubstringMatcher(),
        ]
    )
