"""Dictionary-based detection — the heuristic layer of the pipeline.

A local term list (``phrase → category``) is searched case-insensitively
in the page text with whitespace-flexible patterns, and every hit is
aligned onto the tokens. Useful for organisation-specific identifiers the
deterministic patterns cannot express and the classifier may miss.
"""

from __future__ import annotations

import logging
import re as _re
from typing import Mapping, Sequence

from scanredact.config import AppConfig, config
from scanredact.detection.alignment import align_span
from scanredact.detection.categories import map_category
from scanredact.detection.detection_config import HEURISTIC_CONFIDENCE
from scanredact.models.schemas import DetectionSource, Entity, PIIType, Token

logger = logging.getLogger(__name__)


def _build_flex_pattern(term: str) -> _re.Pattern:
    """Case-insensitive, whitespace-flexible regex for *term*.

    Spaces become ``\\s+`` so a term still matches when OCR put a line
    break between its words. A word character at either end gets a ``\\b``
    boundary; anything else gets a not-a-word-character lookaround, so
    keys ending in punctuation (``S.A.``) still match before whitespace.
    """
    escaped = _re.escape(term)
    pat_str = _re.sub(r"(?:\\\s)+", r"\\s+", escaped)

    if term[0].isalnum():
        pat_str = r"\b" + pat_str
    else:
        pat_str = r"(?<!\w)" + pat_str

    if term[-1].isalnum():
        pat_str = pat_str + r"\b"
    else:
        pat_str = pat_str + r"(?!\w)"

    return _re.compile(pat_str, _re.IGNORECASE)


class DictionaryDetector:
    """Match a fixed vocabulary of sensitive terms."""

    def __init__(
        self,
        terms: Mapping[str, PIIType | str],
        confidence: float = HEURISTIC_CONFIDENCE,
    ) -> None:
        self._confidence = confidence
        self._patterns: list[tuple[_re.Pattern, PIIType]] = []
        for term, category in terms.items():
            key = " ".join(term.split())
            if not key:
                continue
            pii_type = category if isinstance(category, PIIType) else map_category(category)
            self._patterns.append((_build_flex_pattern(key), pii_type))

    @classmethod
    def from_config(cls, settings: AppConfig | None = None) -> "DictionaryDetector | None":
        """Build from ``settings.dictionary_terms``; ``None`` when empty."""
        settings = settings or config
        if not settings.dictionary_terms:
            return None
        return cls(settings.dictionary_terms)

    def __len__(self) -> int:
        return len(self._patterns)

    def detect(
        self,
        full_text: str,
        tokens: Sequence[Token],
        page_index: int = 0,
        settings: AppConfig | None = None,
    ) -> list[Entity]:
        settings = settings or config
        entities: list[Entity] = []
        for pattern, pii_type in self._patterns:
            for m in pattern.finditer(full_text):
                aligned = align_span(
                    full_text, tokens, m.start(), m.end(), page_index,
                    extra_range=settings.extra_script_range,
                    partial_ratio=settings.align_partial_ratio,
                )
                if not aligned.found:
                    continue
                entities.append(Entity(
                    category=pii_type,
                    value=m.group(),
                    confidence=self._confidence,
                    bbox=aligned.rect,
                    masked=True,
                    source=DetectionSource.HEURISTIC,
                ))
        logger.info("Page %d: heuristic layer found %d entities", page_index, len(entities))
        return entities
