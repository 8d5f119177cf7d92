"""Cross-layer merge — combines entities from every detection layer into
one consistent, non-overlapping, confidence-ranked set.
"""

from __future__ import annotations

import logging
from typing import Iterable

from scanredact.detection.bbox_utils import _dedupe_by_overlap
from scanredact.detection.categories import resolve_required_fields
from scanredact.detection.detection_config import OVERLAP_THRESHOLD
from scanredact.models.schemas import Entity, PIIType

logger = logging.getLogger(__name__)


def merge_layers(
    entities: Iterable[Entity],
    confidence_threshold: float,
    required_fields: Iterable[str | PIIType] | None = None,
    overlap_threshold: float = OVERLAP_THRESHOLD,
) -> list[Entity]:
    """Merge detections from all layers.

    Strategy:
    1. De-duplicate overlapping entities, higher confidence first.
    2. Drop anything below *confidence_threshold*.
    3. Keep visible (``masked=False``) every entity whose category the
       caller marked as required.

    Input entities are never modified; flipped entities are copies.
    """
    entities = list(entities)
    kept = _dedupe_by_overlap(entities, overlap_threshold)
    dropped = len(entities) - len(kept)

    result = [e for e in kept if e.confidence >= confidence_threshold]
    below = len(kept) - len(result)

    required = resolve_required_fields(required_fields)
    if required:
        result = [
            e.model_copy(update={"masked": False}) if e.category in required else e
            for e in result
        ]

    logger.info(
        "Merged %d entities → %d (overlap-dropped %d, below threshold %d, kept visible %d)",
        len(entities), len(result), dropped, below,
        sum(1 for e in result if not e.masked),
    )
    return result
