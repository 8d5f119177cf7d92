"""Tests for cross-layer merging — bbox_utils overlap index and merge_layers."""

from __future__ import annotations

import pytest

from scanredact.detection.bbox_utils import (
    _bbox_cells,
    _bbox_overlap_area,
    _dedupe_by_overlap,
    overlap_ratio,
)
from scanredact.detection.merge import merge_layers
from scanredact.models.schemas import DetectionSource, Entity, PageRect, PIIType, Rect


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _entity(x: float, y: float, w: float, h: float,
            confidence: float = 0.9,
            category: PIIType = PIIType.SENSITIVE,
            page: int = 0,
            value: str = "TEST") -> Entity:
    return Entity(
        category=category,
        value=value,
        confidence=confidence,
        bbox=PageRect(x=x, y=y, w=w, h=h, page_index=page),
        source=DetectionSource.DETERMINISTIC,
    )


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------

class TestOverlap:
    def test_overlap_area(self):
        a = Rect(x=0, y=0, w=10, h=10)
        b = Rect(x=5, y=5, w=10, h=10)
        assert _bbox_overlap_area(a, b) == pytest.approx(25.0)

    def test_touching_edges_do_not_overlap(self):
        a = Rect(x=0, y=0, w=10, h=10)
        b = Rect(x=10, y=0, w=10, h=10)
        assert _bbox_overlap_area(a, b) == 0.0

    def test_ratio_uses_smaller_area(self):
        big = Rect(x=0, y=0, w=100, h=100)
        small = Rect(x=10, y=10, w=10, h=10)
        assert overlap_ratio(big, small) == pytest.approx(1.0)

    def test_zero_area_never_overlaps(self):
        assert overlap_ratio(Rect(x=0, y=0, w=0, h=0), Rect(x=0, y=0, w=10, h=10)) == 0.0

    def test_cells_are_page_scoped(self):
        cells = _bbox_cells(PageRect(x=90, y=10, w=20, h=10, page_index=3))
        assert cells == {(3, 0, 0), (3, 0, 1)}


# ---------------------------------------------------------------------------
# _dedupe_by_overlap
# ---------------------------------------------------------------------------

class TestDedupe:
    def test_higher_confidence_wins(self):
        low = _entity(10, 0, 100, 20, confidence=0.6)
        high = _entity(0, 0, 100, 20, confidence=0.9)
        kept = _dedupe_by_overlap([low, high])
        assert kept == [high]

    def test_small_overlap_keeps_both(self):
        a = _entity(0, 0, 100, 20)
        b = _entity(90, 0, 100, 20, confidence=0.8)
        assert len(_dedupe_by_overlap([a, b])) == 2

    def test_ties_keep_input_order(self):
        first = _entity(0, 0, 50, 20, value="first")
        second = _entity(0, 0, 50, 20, value="second")
        assert [e.value for e in _dedupe_by_overlap([first, second])] == ["first"]

    def test_same_box_on_other_page_kept(self):
        a = _entity(0, 0, 50, 20, page=0)
        b = _entity(0, 0, 50, 20, page=1, confidence=0.5)
        assert len(_dedupe_by_overlap([a, b])) == 2

    def test_sentinels_never_conflict(self):
        a = _entity(0, 0, 0, 0)
        b = _entity(0, 0, 0, 0)
        c = _entity(0, 0, 50, 20)
        assert len(_dedupe_by_overlap([a, b, c])) == 3

    def test_boxes_spanning_many_cells(self):
        wide = _entity(0, 0, 950, 20, confidence=0.95)
        inside = _entity(800, 5, 40, 10, confidence=0.7)
        elsewhere = _entity(0, 500, 40, 10, confidence=0.7)
        kept = _dedupe_by_overlap([inside, wide, elsewhere])
        assert wide in kept and elsewhere in kept and inside not in kept


# ---------------------------------------------------------------------------
# merge_layers
# ---------------------------------------------------------------------------

class TestMergeLayers:
    def test_dedup_then_threshold(self):
        high = _entity(0, 0, 100, 20, confidence=0.9)
        dup = _entity(5, 0, 100, 20, confidence=0.6)
        weak = _entity(0, 300, 100, 20, confidence=0.4)
        result = merge_layers([dup, high, weak], confidence_threshold=0.5)
        assert result == [high]

    def test_threshold_is_inclusive(self):
        e = _entity(0, 0, 10, 10, confidence=0.5)
        assert merge_layers([e], confidence_threshold=0.5) == [e]

    def test_required_field_kept_visible(self):
        name = _entity(0, 0, 50, 20, category=PIIType.NAME)
        phone = _entity(0, 100, 50, 20, category=PIIType.PHONE)
        result = merge_layers([name, phone], 0.5, required_fields=["name"])
        by_cat = {e.category: e for e in result}
        assert by_cat[PIIType.NAME].masked is False
        assert by_cat[PIIType.PHONE].masked is True
        # Inputs untouched
        assert name.masked is True

    def test_unknown_required_field_ignored(self):
        e = _entity(0, 0, 50, 20, category=PIIType.SENSITIVE)
        assert merge_layers([e], 0.5, required_fields=["nonsense"])[0].masked is True

    def test_custom_overlap_threshold(self):
        a = _entity(0, 0, 100, 20, confidence=0.9)
        b = _entity(60, 0, 100, 20, confidence=0.8)   # 40% of b overlaps a
        assert len(merge_layers([a, b], 0.0)) == 2
        assert len(merge_layers([a, b], 0.0, overlap_threshold=0.3)) == 1

    def test_empty(self):
        assert merge_layers([], 0.5) == []
