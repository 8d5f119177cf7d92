"""Tests for the evidence log."""

from __future__ import annotations

from scanredact.evidence import ACTION_KEPT_VISIBLE, ACTION_MASKED, build_evidence_log
from scanredact.models.schemas import DetectionSource, Entity, PageRect, PIIType


def _entity(category: PIIType, masked: bool, confidence: float = 0.9) -> Entity:
    return Entity(
        category=category,
        value="secret value",
        confidence=confidence,
        bbox=PageRect(x=1, y=2, w=3, h=4),
        masked=masked,
        source=DetectionSource.DETERMINISTIC,
    )


class TestBuildEvidenceLog:
    def test_actions_follow_masked_flag(self):
        log = build_evidence_log(
            "scan.png",
            [_entity(PIIType.PHONE, True, 0.9), _entity(PIIType.NAME, False, 0.8)],
            required_fields=[PIIType.NAME],
        )
        assert log.file_name == "scan.png"
        assert [e.action for e in log.detected_entities] == [ACTION_MASKED, ACTION_KEPT_VISIBLE]
        assert [e.category for e in log.detected_entities] == [PIIType.PHONE, PIIType.NAME]
        assert log.detected_entities[1].confidence == 0.8
        assert log.required_fields == ["NAME"]

    def test_values_not_recorded(self):
        log = build_evidence_log("scan.png", [_entity(PIIType.PHONE, True)])
        assert "secret value" not in log.model_dump_json()

    def test_user_confirmed_flag(self):
        log = build_evidence_log("a", [_entity(PIIType.DOB, True)], user_confirmed=False)
        assert log.detected_entities[0].user_confirmed is False

    def test_empty(self):
        log = build_evidence_log("empty.png", [])
        assert log.detected_entities == []
        assert log.timestamp.tzinfo is not None
