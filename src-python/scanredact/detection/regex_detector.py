"""Regex-based PII detector — the deterministic layer of the pipeline.

Fast, high-precision detection of structured identifiers: national ID,
tax ID, payment card, phone, email and date of birth.

Validated categories go through their checksum: a pass lifts confidence
to 1.0, a failure demotes the match to the category's floor, and a match
whose floor sits below the discard line is dropped outright.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, NamedTuple, Sequence

from scanredact.config import AppConfig, config
from scanredact.detection.alignment import align_span
from scanredact.detection.checksums import luhn_validate, pan_validate, verhoeff_validate
from scanredact.detection.detection_config import DISCARD_BELOW, VALIDATED_CONFIDENCE
from scanredact.detection.regex_patterns import PATTERNS as _PATTERNS
from scanredact.detection.regex_patterns import VALIDATED_TYPES as _VALIDATED_TYPES
from scanredact.models.schemas import DetectionSource, Entity, PIIType, Token

logger = logging.getLogger(__name__)


class RegexMatch(NamedTuple):
    start: int
    end: int
    text: str
    pii_type: PIIType
    confidence: float


_COMPILED_PATTERNS: list[tuple[re.Pattern, PIIType, float]] = [
    (re.compile(p, flags), t, conf) for p, t, conf, flags in _PATTERNS
]

_VALIDATORS: dict[PIIType, Callable[[str], bool]] = {
    PIIType.NATIONAL_ID: verhoeff_validate,
    PIIType.CREDIT_CARD: luhn_validate,
    PIIType.TAX_ID: pan_validate,
}


# ═══════════════════════════════════════════════════════════════════════════
# Validation gate
# ═══════════════════════════════════════════════════════════════════════════

def _validated_confidence(
    matched_text: str,
    pii_type: PIIType,
    base_confidence: float,
    settings: AppConfig,
) -> float | None:
    """Confidence after the checksum gate, or ``None`` to drop the match."""
    validator = _VALIDATORS.get(pii_type)
    if validator is None:
        return base_confidence
    if validator(matched_text):
        return VALIDATED_CONFIDENCE
    floor = getattr(settings, _VALIDATED_TYPES[pii_type])
    if floor < DISCARD_BELOW:
        return None
    return floor


def _resolve_overlaps(matches: list[RegexMatch]) -> list[RegexMatch]:
    """Keep one match per text span: highest confidence first, then longest.

    A demoted match never displaces a validated one it overlaps, so a
    failed card number swallowing a national ID or phone next to other
    digits leaves the stronger match in place.
    """
    ranked = sorted(
        matches,
        key=lambda m: (-m.confidence, -(m.end - m.start), m.start),
    )
    kept: list[RegexMatch] = []
    for match in ranked:
        if any(match.start < k.end and k.start < match.end for k in kept):
            continue
        kept.append(match)
    kept.sort(key=lambda m: m.start)
    return kept


def detect_regex(text: str, settings: AppConfig | None = None) -> list[RegexMatch]:
    """Scan *text* with every pattern and return validated matches.

    Returns non-overlapping matches sorted by position.
    """
    settings = settings or config
    all_matches: list[RegexMatch] = []

    for compiled_re, pii_type, base_confidence in _COMPILED_PATTERNS:
        for m in compiled_re.finditer(text):
            matched_text = m.group()
            confidence = _validated_confidence(matched_text, pii_type, base_confidence, settings)
            if confidence is None:
                logger.debug("Dropped %s match failing validation", pii_type.value)
                continue
            all_matches.append(RegexMatch(
                start=m.start(),
                end=m.end(),
                text=matched_text,
                pii_type=pii_type,
                confidence=confidence,
            ))

    return _resolve_overlaps(all_matches)


def run_deterministic_layer(
    full_text: str,
    tokens: Sequence[Token],
    page_index: int = 0,
    settings: AppConfig | None = None,
) -> list[Entity]:
    """Detect structured identifiers and attach geometry to each of them."""
    settings = settings or config
    entities: list[Entity] = []
    for match in detect_regex(full_text, settings):
        aligned = align_span(
            full_text, tokens, match.start, match.end, page_index,
            extra_range=settings.extra_script_range,
            partial_ratio=settings.align_partial_ratio,
        )
        entities.append(Entity(
            category=match.pii_type,
            value=match.text,
            confidence=match.confidence,
            bbox=aligned.rect,
            masked=True,
            source=DetectionSource.DETERMINISTIC,
        ))
    logger.info("Page %d: deterministic layer found %d entities", page_index, len(entities))
    return entities
