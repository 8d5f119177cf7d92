"""Text → token geometry alignment.

Maps a character range of the page text, or a free-standing string returned
by the classifier, onto the OCR token sequence and returns the enclosing
rectangle.

Two strategies, first success wins:

1. Token-sequence matching on normalised words (exact window, then a
   partial in-order match). Works on content only, so it is immune to the
   character-offset drift multi-byte scripts cause in the OCR full text.
2. Character-offset matching, which re-locates every token in the full
   text with a forward-only cursor and keeps those intersecting the span.

When both fail the caller gets the zero-size ``PageRect.unknown`` sentinel
instead of an exception.
"""

from __future__ import annotations

import functools
import logging
import math
import re
from typing import Iterable, NamedTuple, Optional, Sequence

from scanredact.detection.detection_config import ALIGN_PARTIAL_RATIO, EXTRA_SCRIPT_RANGE
from scanredact.models.schemas import PageRect, Rect, Token

logger = logging.getLogger(__name__)

STRATEGY_SEQUENCE = "sequence"
STRATEGY_PARTIAL = "partial"
STRATEGY_OFFSET = "offset"
STRATEGY_UNKNOWN = "unknown"


class Alignment(NamedTuple):
    rect: PageRect
    token_indices: list[int]
    strategy: str

    @property
    def found(self) -> bool:
        return self.strategy != STRATEGY_UNKNOWN


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

@functools.lru_cache(maxsize=8)
def _strip_pattern(extra_range: str) -> re.Pattern:
    return re.compile(f"[^a-z0-9{extra_range}]")


def normalize_word(text: str, extra_range: str = EXTRA_SCRIPT_RANGE) -> str:
    """Lower-case and drop everything outside ``[a-z0-9]`` + *extra_range*."""
    return _strip_pattern(extra_range).sub("", text.lower())


def split_normalized(text: str, extra_range: str = EXTRA_SCRIPT_RANGE) -> list[str]:
    """Split on whitespace, normalise each word, drop words that vanish."""
    words = (normalize_word(w, extra_range) for w in text.split())
    return [w for w in words if w]


def min_matches(count: int, ratio: float) -> int:
    """Smallest number of matched words that satisfies *ratio* of *count*."""
    return max(1, math.ceil(round(count * ratio, 6)))


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def union_rect(rects: Iterable[Rect]) -> Rect:
    """Smallest rectangle enclosing every rect in *rects* (must be non-empty)."""
    rects = list(rects)
    x0 = min(r.x for r in rects)
    y0 = min(r.y for r in rects)
    x1 = max(r.right for r in rects)
    y1 = max(r.bottom for r in rects)
    return Rect(x=x0, y=y0, w=x1 - x0, h=y1 - y0)


def _page_rect(tokens: Sequence[Token], indices: list[int], page_index: int) -> PageRect:
    r = union_rect(tokens[i].bbox for i in indices)
    return PageRect(x=r.x, y=r.y, w=r.w, h=r.h, page_index=page_index)


# ---------------------------------------------------------------------------
# Sequence matching (shared with the zone matcher)
# ---------------------------------------------------------------------------

def find_token_window(normalized: Sequence[str], target: Sequence[str], start: int = 0) -> Optional[int]:
    """Index of the first window from *start* whose words equal *target* in order."""
    n = len(target)
    if n == 0:
        return None
    for i in range(start, len(normalized) - n + 1):
        if all(normalized[i + j] == target[j] for j in range(n)):
            return i
    return None


def _count_windows(words: Sequence[str], target: Sequence[str]) -> int:
    count = 0
    start = find_token_window(words, target)
    while start is not None:
        count += 1
        start = find_token_window(words, target, start + 1)
    return count


def find_partial_sequence(
    normalized: Sequence[str],
    target: Sequence[str],
    min_ratio: float,
    lookahead: Optional[int] = None,
) -> Optional[list[int]]:
    """First acceptable in-order partial match of *target*.

    Anchors on a token equal to the first target word, then walks forward
    consuming tokens that equal the *next* expected word; unrelated tokens
    in between are skipped. *lookahead* bounds the walk to that many
    positions after the anchor. Returns the matched indices of the first
    anchor that recovers at least ``min_ratio`` of the words.
    """
    n = len(target)
    if n == 0:
        return None
    needed = min_matches(n, min_ratio)
    for i, word in enumerate(normalized):
        if word != target[0]:
            continue
        matched = [i]
        expected = 1
        end = len(normalized) if lookahead is None else min(len(normalized), i + lookahead)
        for j in range(i + 1, end):
            if expected >= n:
                break
            if normalized[j] == target[expected]:
                matched.append(j)
                expected += 1
        if len(matched) >= needed:
            return matched
    return None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def _match_by_tokens(
    text: str,
    tokens: Sequence[Token],
    page_index: int,
    extra_range: str,
    partial_ratio: float,
    occurrence: int = 0,
) -> Optional[Alignment]:
    target = split_normalized(text, extra_range)
    if not target or not tokens:
        return None
    normalized = [normalize_word(t.text, extra_range) for t in tokens]

    start = find_token_window(normalized, target)
    # Prefer the occurrence-th window; stay on the last one found if fewer exist
    for _ in range(occurrence):
        if start is None:
            break
        later = find_token_window(normalized, target, start + 1)
        if later is None:
            break
        start = later
    if start is not None:
        indices = list(range(start, start + len(target)))
        return Alignment(_page_rect(tokens, indices, page_index), indices, STRATEGY_SEQUENCE)

    indices = find_partial_sequence(normalized, target, partial_ratio)
    if indices:
        return Alignment(_page_rect(tokens, indices, page_index), indices, STRATEGY_PARTIAL)
    return None


def _match_by_offsets(
    full_text: str,
    tokens: Sequence[Token],
    char_start: int,
    char_end: int,
) -> list[int]:
    """Indices of tokens whose located span intersects ``[char_start, char_end)``.

    Each token is searched forward from the end of the last located token.
    A token that cannot be found is skipped and leaves the cursor alone.
    """
    cursor = 0
    hits: list[int] = []
    for i, token in enumerate(tokens):
        if not token.text:
            continue
        tok_start = full_text.find(token.text, cursor)
        if tok_start == -1:
            continue
        tok_end = tok_start + len(token.text)
        if tok_end > char_start and tok_start < char_end:
            hits.append(i)
        cursor = tok_end
        if tok_start > char_end:
            break
    return hits


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _unknown(page_index: int, what: str) -> Alignment:
    logger.warning(
        "Page %d: no geometry for %d-char match, using unknown-geometry sentinel",
        page_index, len(what),
    )
    logger.debug("Unaligned text: %r", what)
    return Alignment(PageRect.unknown(page_index), [], STRATEGY_UNKNOWN)


def align_text(
    text: str,
    tokens: Sequence[Token],
    page_index: int = 0,
    *,
    extra_range: str = EXTRA_SCRIPT_RANGE,
    partial_ratio: float = ALIGN_PARTIAL_RATIO,
) -> Alignment:
    """Align a free-standing string (no character offsets available)."""
    found = _match_by_tokens(text.strip(), tokens, page_index, extra_range, partial_ratio)
    return found or _unknown(page_index, text)


def align_span(
    full_text: str,
    tokens: Sequence[Token],
    char_start: int,
    char_end: int,
    page_index: int = 0,
    *,
    extra_range: str = EXTRA_SCRIPT_RANGE,
    partial_ratio: float = ALIGN_PARTIAL_RATIO,
) -> Alignment:
    """Align ``full_text[char_start:char_end]`` onto *tokens*.

    When the same words appear several times, the number of earlier
    occurrences in ``full_text[:char_start]`` selects which token window
    is used, so a repeated value maps to its own tokens.
    """
    matched_text = full_text[char_start:char_end].strip()
    occurrence = _count_windows(
        split_normalized(full_text[:char_start], extra_range),
        split_normalized(matched_text, extra_range),
    )
    found = _match_by_tokens(
        matched_text, tokens, page_index, extra_range, partial_ratio, occurrence,
    )
    if found is not None:
        return found

    indices = _match_by_offsets(full_text, tokens, char_start, char_end)
    if indices:
        return Alignment(_page_rect(tokens, indices, page_index), indices, STRATEGY_OFFSET)
    return _unknown(page_index, matched_text)
