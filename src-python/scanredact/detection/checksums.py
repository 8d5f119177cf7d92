"""Checksum / format validators for structured ID numbers.

Pure functions: each takes the raw matched string, normalises it, and
returns a bool. Malformed input returns ``False``; nothing here raises.
"""

from __future__ import annotations

import re

# Verhoeff dihedral-group multiplication table D5.
_VERHOEFF_D: tuple[tuple[int, ...], ...] = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 2, 3, 4, 0, 6, 7, 8, 9, 5),
    (2, 3, 4, 0, 1, 7, 8, 9, 5, 6),
    (3, 4, 0, 1, 2, 8, 9, 5, 6, 7),
    (4, 0, 1, 2, 3, 9, 5, 6, 7, 8),
    (5, 9, 8, 7, 6, 0, 4, 3, 2, 1),
    (6, 5, 9, 8, 7, 1, 0, 4, 3, 2),
    (7, 6, 5, 9, 8, 2, 1, 0, 4, 3),
    (8, 7, 6, 5, 9, 3, 2, 1, 0, 4),
    (9, 8, 7, 6, 5, 4, 3, 2, 1, 0),
)

# Verhoeff position permutation table (row = position mod 8).
_VERHOEFF_P: tuple[tuple[int, ...], ...] = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 5, 7, 6, 2, 8, 3, 0, 9, 4),
    (5, 8, 0, 3, 7, 9, 6, 1, 4, 2),
    (8, 9, 1, 6, 0, 4, 3, 5, 2, 7),
    (9, 4, 5, 3, 1, 2, 7, 6, 8, 0),
    (4, 2, 8, 6, 5, 7, 3, 9, 0, 1),
    (2, 7, 9, 3, 8, 0, 6, 4, 1, 5),
    (7, 0, 4, 6, 9, 1, 3, 2, 5, 8),
)

_NATIONAL_ID_LENGTH = 12
_PAN_RE = re.compile(r"[A-Z]{5}[0-9]{4}[A-Z]")


def verhoeff_validate(number_str: str) -> bool:
    """Verhoeff check for the 12-digit national ID.

    The check digit is the last digit; the running checksum over all twelve
    digits (processed from the check digit backwards) must reduce to 0.
    """
    if not isinstance(number_str, str):
        return False
    digits = re.sub(r"\s", "", number_str)
    if len(digits) != _NATIONAL_ID_LENGTH or not digits.isascii() or not digits.isdigit():
        return False
    checksum = 0
    for i, ch in enumerate(reversed(digits)):
        checksum = _VERHOEFF_D[checksum][_VERHOEFF_P[i % 8][int(ch)]]
    return checksum == 0


def luhn_validate(number_str: str) -> bool:
    """Luhn algorithm, validates payment card numbers (13–19 digits)."""
    if not isinstance(number_str, str):
        return False
    clean = re.sub(r"[\s\-]", "", number_str)
    if not clean.isascii() or not clean.isdigit():
        return False
    if not 13 <= len(clean) <= 19:
        return False
    checksum = 0
    for i, d in enumerate(int(c) for c in reversed(clean)):
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        checksum += d
    return checksum % 10 == 0


def pan_validate(text: str) -> bool:
    """Structural check for the AAAAA9999A tax ID. No check digit exists."""
    if not isinstance(text, str):
        return False
    clean = re.sub(r"\s", "", text)
    return len(clean) == 10 and _PAN_RE.fullmatch(clean) is not None
