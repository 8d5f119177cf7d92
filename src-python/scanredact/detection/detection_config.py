"""Detection pipeline configuration constants.

This module centralizes the heuristic thresholds used by alignment, zone
matching and merging. None of these are proven optimal; they were tuned
against phone-camera scans of ID cards and printed forms and are exposed
through ``AppConfig`` so they can be adjusted per corpus.

Tuning Guide:
- Lower partial-match ratios → more OCR noise tolerated, more wrong geometry
- Larger padding → safer coverage of ascenders/descenders, more collateral
- Larger merge gap → fewer rectangles, coarser redaction
"""

from __future__ import annotations

# =============================================================================
# TEXT NORMALISATION
# =============================================================================

EXTRA_SCRIPT_RANGE: str = "\u0900-\u097F"
"""Unicode block kept by ``normalize_word`` besides ``[a-z0-9]``.
Default is Devanagari; set to "" for Latin-only documents."""

# =============================================================================
# ALIGNMENT
# =============================================================================

ALIGN_PARTIAL_RATIO: float = 0.5
"""Share of target words the partial token-sequence match must recover."""

# =============================================================================
# PHRASE → ZONE MATCHING
# =============================================================================

REDACTION_PADDING: float = 5.0
"""Pixels added on every side of a zone so no glyph fragment survives."""

ZONE_PARTIAL_RATIO: float = 0.6
"""Share of phrase words the partial zone fallback must recover."""

ZONE_LOOKAHEAD_FACTOR: int = 2
"""Partial zone fallback scans at most factor × phrase length tokens."""

ZONE_ROW_TOLERANCE: float = 5.0
"""Zones whose top edges differ by at most this many px sort as one row."""

ZONE_MERGE_GAP: float = 2.0
"""Zones closer than this in both axes are folded into one rectangle."""

# =============================================================================
# CROSS-LAYER MERGE
# =============================================================================

OVERLAP_THRESHOLD: float = 0.5
"""Intersection / smaller-area ratio above which two entities conflict."""

BBOX_GRID_CELL_SIZE: float = 100.0
"""Cell size (px) of the spatial index used during de-duplication."""

# =============================================================================
# CONFIDENCE
# =============================================================================

BASE_CONFIDENCE: float = 0.85
"""Default confidence for a raw pattern match."""

VALIDATED_CONFIDENCE: float = 1.0
"""Confidence of a match that passed its checksum."""

SEMANTIC_CONFIDENCE: float = 0.9
"""Fixed confidence of entities lifted from classifier output."""

HEURISTIC_CONFIDENCE: float = 0.7
"""Default confidence of dictionary-layer entities."""

DISCARD_BELOW: float = 0.5
"""Checksum-failed matches whose floor is below this are dropped."""

DEFAULT_CONFIDENCE_THRESHOLD: float = 0.5
"""Final filter applied after de-duplication."""

# =============================================================================
# RETRY / BACKOFF (semantic classifier only)
# =============================================================================

PRIMARY_MAX_ATTEMPTS: int = 3
LEGACY_MAX_ATTEMPTS: int = 2
RETRY_INITIAL_DELAY: float = 1.0
RETRY_BACKOFF_FACTOR: float = 1.5
