"""Declarative regex pattern definitions for the deterministic layer.

Pure data: each entry is ``(pattern, PIIType, base_confidence, flags)``.
Patterns are evaluated in list order; the matching and validation logic
lives in ``regex_detector.py``.
"""

from __future__ import annotations

import re

from scanredact.models.schemas import PIIType

_NOFLAGS = 0
_IC = re.IGNORECASE


# ═══════════════════════════════════════════════════════════════════════════
# Standalone patterns
# ═══════════════════════════════════════════════════════════════════════════

PATTERNS: list[tuple[str, PIIType, float, int]] = [
    # ── National ID: 12 digits in 4-4-4 groups, first digit 2-9 ──
    (r"\b[2-9]\d{3}\s?\d{4}\s?\d{4}\b", PIIType.NATIONAL_ID, 0.85, _NOFLAGS),

    # ── Tax ID: AAAAA9999A ──
    (r"\b[A-Z]{5}[0-9]{4}[A-Z]\b", PIIType.TAX_ID, 0.85, _NOFLAGS),

    # ── Payment card: 13-19 digits, optional space / dash separators ──
    (r"\b\d(?:[ \-]?\d){12,18}\b", PIIType.CREDIT_CARD, 0.85, _NOFLAGS),

    # ── Mobile phone: optional +91 prefix, 10 digits starting 6-9 ──
    (r"(?<![\d+])(?:\+91[\s\-]?)?[6-9]\d{4}\s?\d{5}(?!\d)", PIIType.PHONE, 0.90, _NOFLAGS),

    # ── Email ──
    (r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b", PIIType.EMAIL, 0.85, _NOFLAGS),

    # ── Date of birth: DD/MM/YYYY, DD-MM-YYYY, DD.MM.YYYY ──
    (r"\b(?:0?[1-9]|[12]\d|3[01])[/\-.](?:0?[1-9]|1[0-2])[/\-.](?:19|20)\d{2}\b",
     PIIType.DOB, 0.85, _NOFLAGS),
]


# Categories whose matches go through a checksum / structure validator.
# Value is the ``AppConfig`` attribute holding the confidence floor applied
# when validation fails.
VALIDATED_TYPES: dict[PIIType, str] = {
    PIIType.NATIONAL_ID: "national_id_floor",
    PIIType.CREDIT_CARD: "card_number_floor",
    PIIType.TAX_ID: "tax_id_floor",
}
