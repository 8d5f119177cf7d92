"""Tests for the deterministic layer — patterns, checksum gate, overlap resolution."""

from __future__ import annotations

import pytest

from scanredact.config import AppConfig
from scanredact.detection.regex_detector import detect_regex, run_deterministic_layer
from scanredact.models.schemas import DetectionSource, PIIType, Rect, Token


def _types(text: str, settings: AppConfig | None = None) -> dict[PIIType, float]:
    return {m.pii_type: m.confidence for m in detect_regex(text, settings)}


# ---------------------------------------------------------------------------
# Validated categories
# ---------------------------------------------------------------------------

class TestNationalId:
    def test_valid_number_gets_full_confidence(self):
        matches = detect_regex("UID 2341 2341 2346 issued")
        assert len(matches) == 1
        assert matches[0].pii_type == PIIType.NATIONAL_ID
        assert matches[0].confidence == pytest.approx(1.0)
        assert matches[0].text == "2341 2341 2346"

    def test_invalid_number_demoted_to_floor(self):
        matches = detect_regex("UID 2341 2341 2345")
        assert [m.pii_type for m in matches] == [PIIType.NATIONAL_ID]
        assert matches[0].confidence == pytest.approx(0.6)

    def test_floor_below_discard_line_drops_match(self):
        settings = AppConfig(national_id_floor=0.4)
        assert detect_regex("UID 2341 2341 2345", settings) == []

    def test_leading_zero_or_one_not_matched(self):
        assert detect_regex("1341 2341 2346") == []


class TestCreditCard:
    def test_valid_card(self):
        found = _types("Card: 4111 1111 1111 1111")
        assert found == {PIIType.CREDIT_CARD: pytest.approx(1.0)}

    def test_invalid_card_kept_at_floor(self):
        found = _types("Card: 4111-1111-1111-1112")
        assert found == {PIIType.CREDIT_CARD: pytest.approx(0.5)}

    def test_card_wins_over_embedded_national_id(self):
        """The first 12 digits of a card also look like a national ID."""
        matches = detect_regex("4111 1111 1111 1111")
        assert len(matches) == 1
        assert matches[0].pii_type == PIIType.CREDIT_CARD

    def test_failed_card_does_not_swallow_valid_national_id(self):
        """A trailing digit group turns the ID into a Luhn-failing card candidate."""
        matches = detect_regex("Aadhaar: 2341 2341 2346 1947")
        assert [(m.pii_type, m.text) for m in matches] == [
            (PIIType.NATIONAL_ID, "2341 2341 2346"),
        ]
        assert matches[0].confidence == pytest.approx(1.0)

    def test_failed_card_does_not_swallow_phone(self):
        matches = detect_regex("Mobile 9876543210 411001")
        assert [(m.pii_type, m.text) for m in matches] == [(PIIType.PHONE, "9876543210")]


class TestTaxId:
    def test_valid(self):
        assert _types("PAN ABCDE1234F") == {PIIType.TAX_ID: pytest.approx(1.0)}

    def test_lowercase_not_matched(self):
        assert detect_regex("pan abcde1234f") == []


# ---------------------------------------------------------------------------
# Unvalidated categories
# ---------------------------------------------------------------------------

class TestOtherPatterns:
    def test_phone(self):
        matches = detect_regex("Mobile: 9876543210")
        assert [(m.pii_type, m.text) for m in matches] == [(PIIType.PHONE, "9876543210")]
        assert matches[0].confidence == pytest.approx(0.9)

    def test_phone_with_country_code(self):
        matches = detect_regex("Call +91 98765 43210 now")
        assert matches[0].pii_type == PIIType.PHONE
        assert matches[0].text == "+91 98765 43210"

    def test_email(self):
        matches = detect_regex("mail jane.doe@example.org today")
        assert matches[0].pii_type == PIIType.EMAIL
        assert matches[0].confidence == pytest.approx(0.85)

    def test_dob(self):
        matches = detect_regex("DOB: 01/01/1990")
        assert matches[0].pii_type == PIIType.DOB
        assert matches[0].text == "01/01/1990"

    def test_invalid_month_not_a_dob(self):
        assert detect_regex("on 01/13/1990") == []

    def test_matches_sorted_and_disjoint(self):
        text = "a@b.co 9876543210 ABCDE1234F 2341 2341 2346"
        matches = detect_regex(text)
        starts = [m.start for m in matches]
        assert starts == sorted(starts)
        for a, b in zip(matches, matches[1:]):
            assert a.end <= b.start

    def test_empty_text(self):
        assert detect_regex("") == []


# ---------------------------------------------------------------------------
# run_deterministic_layer: geometry attachment
# ---------------------------------------------------------------------------

def _tokens(words: list[tuple[str, float]]) -> list[Token]:
    return [Token(text=w, bbox=Rect(x=x, y=50, w=10 * len(w), h=12)) for w, x in words]


class TestDeterministicLayer:
    def test_entity_bbox_spans_matched_tokens_only(self):
        tokens = _tokens([("Aadhaar:", 0), ("2341", 100), ("2341", 150), ("2346", 200)])
        text = "Aadhaar: 2341 2341 2346"
        entities = run_deterministic_layer(text, tokens, page_index=2)
        assert len(entities) == 1
        e = entities[0]
        assert e.category == PIIType.NATIONAL_ID
        assert e.source == DetectionSource.DETERMINISTIC
        assert e.masked is True
        assert e.bbox.page_index == 2
        assert (e.bbox.x, e.bbox.y, e.bbox.w, e.bbox.h) == (100, 50, 140, 12)

    def test_unalignable_match_carries_sentinel(self):
        entities = run_deterministic_layer("ABCDE1234F", [], page_index=1)
        assert len(entities) == 1
        assert entities[0].bbox.is_unknown
        assert entities[0].bbox.page_index == 1
