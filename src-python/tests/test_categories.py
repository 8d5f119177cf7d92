"""Tests for the category vocabulary."""

from __future__ import annotations

import pytest

from scanredact.detection.categories import map_category, resolve_required_fields
from scanredact.models.schemas import PIIType


class TestMapCategory:
    @pytest.mark.parametrize("label, expected", [
        ("Mobile Number", PIIType.PHONE),
        ("  AADHAR ", PIIType.NATIONAL_ID),
        ("pan", PIIType.TAX_ID),
        ("Date  of   Birth", PIIType.DOB),
        ("credit_card", PIIType.CREDIT_CARD),
        ("diagnosis", PIIType.MEDICAL),
        ("EMAIL", PIIType.EMAIL),
        ("national id", PIIType.NATIONAL_ID),
    ])
    def test_synonyms(self, label: str, expected: PIIType):
        assert map_category(label) == expected

    @pytest.mark.parametrize("label", ["vehicle number", "", None])
    def test_unknown_is_sensitive(self, label):
        assert map_category(label) == PIIType.SENSITIVE


class TestResolveRequiredFields:
    def test_mixed_inputs(self):
        assert resolve_required_fields(["name", PIIType.EMAIL, "ADDRESS"]) == {
            PIIType.NAME, PIIType.EMAIL, PIIType.ADDRESS,
        }

    def test_unknown_names_ignored(self, caplog: pytest.LogCaptureFixture):
        assert resolve_required_fields(["bogus"]) == set()
        assert any("bogus" in r.getMessage() for r in caplog.records)

    def test_none(self):
        assert resolve_required_fields(None) == set()
