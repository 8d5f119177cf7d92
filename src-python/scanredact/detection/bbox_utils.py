"""Bounding-box geometry utilities for entity de-duplication.

``_dedupe_by_overlap`` uses a grid-based spatial index so each entity is
only compared against accepted entities sharing a grid cell on the same
page, reducing overlap checks from O(n²) to ~O(n) amortised.
"""

from __future__ import annotations

from collections import defaultdict

from scanredact.detection.detection_config import BBOX_GRID_CELL_SIZE, OVERLAP_THRESHOLD
from scanredact.models.schemas import Entity, PageRect, Rect


def _bbox_overlap_area(a: Rect, b: Rect) -> float:
    """Return the area of intersection between two rectangles."""
    ix0 = max(a.x, b.x)
    iy0 = max(a.y, b.y)
    ix1 = min(a.right, b.right)
    iy1 = min(a.bottom, b.bottom)
    if ix1 <= ix0 or iy1 <= iy0:
        return 0.0
    return (ix1 - ix0) * (iy1 - iy0)


def overlap_ratio(a: Rect, b: Rect) -> float:
    """Intersection area divided by the smaller of the two areas.

    A zero-area rectangle (including the unknown-geometry sentinel)
    overlaps nothing, so the ratio is 0.
    """
    min_area = min(a.area, b.area)
    if min_area <= 0:
        return 0.0
    return _bbox_overlap_area(a, b) / min_area


# ---------------------------------------------------------------------------
# Grid-based spatial index for fast overlap queries
# ---------------------------------------------------------------------------

_GRID_CELL = BBOX_GRID_CELL_SIZE  # cell size in OCR image pixels


def _bbox_cells(bbox: PageRect) -> set[tuple[int, int, int]]:
    """Return the set of ``(page, row, col)`` grid cells that a bbox spans."""
    c0 = int(bbox.x // _GRID_CELL)
    r0 = int(bbox.y // _GRID_CELL)
    c1 = int(bbox.right // _GRID_CELL)
    r1 = int(bbox.bottom // _GRID_CELL)
    cells: set[tuple[int, int, int]] = set()
    for r in range(r0, r1 + 1):
        for c in range(c0, c1 + 1):
            cells.add((bbox.page_index, r, c))
    return cells


def _dedupe_by_overlap(
    entities: list[Entity],
    threshold: float = OVERLAP_THRESHOLD,
) -> list[Entity]:
    """Greedy confidence-ordered de-duplication.

    Strategy:
    1. Stable-sort entities by confidence descending, so ties keep their
       input order.
    2. Accept an entity unless its overlap ratio with an already accepted
       entity on the same page exceeds *threshold*.
    3. Rejected entities are dropped, never shrunk.
    """
    if len(entities) <= 1:
        return list(entities)

    ranked = sorted(entities, key=lambda e: -e.confidence)
    final: list[Entity] = []
    # Grid: cell → list of indices into `final`
    grid: dict[tuple[int, int, int], list[int]] = defaultdict(list)

    for entity in ranked:
        bbox = entity.bbox
        if bbox.area <= 0:
            # Zero-area boxes never conflict and are not indexed.
            final.append(entity)
            continue

        cells = _bbox_cells(bbox)
        seen_keepers: set[int] = set()
        for cell in cells:
            for ki in grid.get(cell, ()):
                seen_keepers.add(ki)

        if any(overlap_ratio(bbox, final[ki].bbox) > threshold for ki in seen_keepers):
            continue

        idx = len(final)
        final.append(entity)
        for cell in cells:
            grid[cell].append(idx)

    return final
