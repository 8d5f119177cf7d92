"""Forbidden-phrase → redaction-zone matching.

The classifier answers with verbatim phrases ("John Doe") while OCR
reports individual words ("John", "Doe"). This module walks the spatial
map, marks every entry covered by a forbidden phrase, and emits padded
rectangles, which are then compacted so one visual line yields as few
rectangles as possible.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from scanredact.detection.alignment import (
    find_partial_sequence,
    find_token_window,
    normalize_word,
    split_normalized,
)
from scanredact.detection.detection_config import (
    EXTRA_SCRIPT_RANGE,
    REDACTION_PADDING,
    SEMANTIC_CONFIDENCE,
    ZONE_LOOKAHEAD_FACTOR,
    ZONE_MERGE_GAP,
    ZONE_PARTIAL_RATIO,
    ZONE_ROW_TOLERANCE,
)
from scanredact.models.schemas import (
    DetectionSource,
    Entity,
    PageRect,
    PIIType,
    RedactionZone,
    Rect,
    SpatialEntry,
    Token,
)

logger = logging.getLogger(__name__)


def build_spatial_map(tokens: Sequence[Token], page_index: int = 0) -> list[SpatialEntry]:
    """One unmarked entry per token, in token order."""
    return [
        SpatialEntry(
            text=t.text,
            left=t.bbox.x,
            top=t.bbox.y,
            width=t.bbox.w,
            height=t.bbox.h,
            page_index=page_index,
        )
        for t in tokens
    ]


def _padded_zone(entries: list[SpatialEntry], phrase: str, padding: float) -> RedactionZone:
    left = min(e.left for e in entries)
    top = min(e.top for e in entries)
    right = max(e.right for e in entries)
    bottom = max(e.bottom for e in entries)
    return RedactionZone(
        rect=Rect(
            x=left - padding,
            y=top - padding,
            w=(right - left) + padding * 2,
            h=(bottom - top) + padding * 2,
        ),
        page_index=entries[0].page_index,
        matched_phrase=phrase,
        matched_token_texts=[e.text for e in entries],
    )


def _partition_phrases(
    phrases: Iterable[str],
    extra_range: str,
) -> tuple[set[str], list[tuple[str, list[str]]]]:
    """Split phrases into a single-word set and de-duplicated multi-word list."""
    single_words: set[str] = set()
    multi: list[tuple[str, list[str]]] = []
    seen: set[tuple[str, ...]] = set()
    for phrase in phrases:
        words = split_normalized(phrase, extra_range)
        if not words:
            continue
        if len(words) == 1:
            single_words.add(words[0])
            continue
        key = tuple(words)
        if key in seen:
            continue
        seen.add(key)
        multi.append((phrase.strip(), words))
    return single_words, multi


def calculate_redaction_zones(
    entries: list[SpatialEntry],
    phrases: Iterable[str],
    required_fields: Optional[Iterable[str]] = None,
    *,
    padding: float = REDACTION_PADDING,
    partial_ratio: float = ZONE_PARTIAL_RATIO,
    lookahead_factor: int = ZONE_LOOKAHEAD_FACTOR,
    extra_range: str = EXTRA_SCRIPT_RANGE,
    row_tolerance: float = ZONE_ROW_TOLERANCE,
    merge_gap: float = ZONE_MERGE_GAP,
) -> list[RedactionZone]:
    """Mark *entries* covered by *phrases* and return compacted zones.

    Multi-word phrases go first: every exact window occurrence yields a
    zone. A phrase with no exact occurrence anywhere falls back to one
    partial in-order match bounded to ``lookahead_factor × n`` tokens.
    Single words then match any entry not already marked.

    *required_fields* is accepted for interface compatibility only; the
    classifier prompt is what keeps required values out of *phrases*.
    """
    if required_fields:
        logger.debug("Zone matcher ignores required fields: %s", list(required_fields))

    single_words, multi_phrases = _partition_phrases(phrases, extra_range)
    normalized = [normalize_word(e.text, extra_range) for e in entries]
    zones: list[RedactionZone] = []

    # ── Pass 1: multi-word phrases ──
    for original, words in multi_phrases:
        n = len(words)
        found_exact = False
        start = find_token_window(normalized, words)
        while start is not None:
            matched = entries[start:start + n]
            for entry in matched:
                entry.redact = True
            zones.append(_padded_zone(matched, original, padding))
            found_exact = True
            start = find_token_window(normalized, words, start + 1)

        if found_exact:
            continue

        indices = find_partial_sequence(
            normalized, words, partial_ratio, lookahead=n * lookahead_factor,
        )
        if indices:
            matched = [entries[i] for i in indices]
            for entry in matched:
                entry.redact = True
            zones.append(_padded_zone(matched, original, padding))
        else:
            logger.debug("No token match for %d-word phrase", n)

    # ── Pass 2: single words over unmarked entries ──
    if single_words:
        for entry, norm in zip(entries, normalized):
            if entry.redact or not norm:
                continue
            if norm in single_words:
                entry.redact = True
                zones.append(_padded_zone([entry], entry.text, padding))

    return merge_adjacent_zones(zones, row_tolerance=row_tolerance, gap=merge_gap)


# ---------------------------------------------------------------------------
# Zone compaction
# ---------------------------------------------------------------------------

def _reading_order(zones: list[RedactionZone], row_tolerance: float) -> list[RedactionZone]:
    """Sort by page, then visual row, then x.

    Rows are formed by scanning zones in (page, y) order and opening a new
    row whenever a top edge sits more than *row_tolerance* below the row's
    first zone, which keeps the ordering a total order.
    """
    by_y = sorted(zones, key=lambda z: (z.page_index, z.rect.y))
    keyed: list[tuple[int, int, float, RedactionZone]] = []
    row = -1
    row_page: Optional[int] = None
    row_top = 0.0
    for zone in by_y:
        if zone.page_index != row_page or zone.rect.y - row_top > row_tolerance:
            row += 1
            row_page = zone.page_index
            row_top = zone.rect.y
        keyed.append((zone.page_index, row, zone.rect.x, zone))
    keyed.sort(key=lambda k: (k[0], k[1], k[2]))
    return [k[3] for k in keyed]


def _near(a: Rect, b: Rect, gap: float) -> bool:
    return (
        b.x <= a.right + gap and a.x <= b.right + gap
        and b.y <= a.bottom + gap and a.y <= b.bottom + gap
    )


def merge_adjacent_zones(
    zones: Sequence[RedactionZone],
    *,
    row_tolerance: float = ZONE_ROW_TOLERANCE,
    gap: float = ZONE_MERGE_GAP,
) -> list[RedactionZone]:
    """Fold overlapping or near-touching zones on the same page together.

    Never mutates *zones*. Merged labels are joined with ``" | "``.
    """
    if len(zones) <= 1:
        return list(zones)

    ordered = _reading_order(list(zones), row_tolerance)
    merged: list[RedactionZone] = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.page_index == last.page_index and _near(last.rect, current.rect, gap):
            x0 = min(last.rect.x, current.rect.x)
            y0 = min(last.rect.y, current.rect.y)
            x1 = max(last.rect.right, current.rect.right)
            y1 = max(last.rect.bottom, current.rect.bottom)
            merged[-1] = RedactionZone(
                rect=Rect(x=x0, y=y0, w=x1 - x0, h=y1 - y0),
                page_index=last.page_index,
                matched_phrase=f"{last.matched_phrase} | {current.matched_phrase}",
                matched_token_texts=last.matched_token_texts + current.matched_token_texts,
            )
        else:
            merged.append(current)
    return merged


def zones_to_entities(
    zones: Iterable[RedactionZone],
    confidence: float = SEMANTIC_CONFIDENCE,
) -> list[Entity]:
    """Lift zones into masked SENSITIVE entities with non-negative origin."""
    return [
        Entity(
            category=PIIType.SENSITIVE,
            value=zone.matched_phrase,
            confidence=confidence,
            bbox=PageRect(
                x=max(0.0, zone.rect.x),
                y=max(0.0, zone.rect.y),
                w=zone.rect.w,
                h=zone.rect.h,
                page_index=zone.page_index,
            ),
            masked=True,
            source=DetectionSource.SEMANTIC,
        )
        for zone in zones
    ]
