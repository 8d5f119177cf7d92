"""Evidence log — an audit record of what was masked and what stayed visible."""

from __future__ import annotations

from typing import Iterable

from scanredact.models.schemas import Entity, EvidenceEntry, EvidenceLog, PIIType

ACTION_MASKED = "masked"
ACTION_KEPT_VISIBLE = "kept_visible"


def entity_action(entity: Entity) -> str:
    return ACTION_MASKED if entity.masked else ACTION_KEPT_VISIBLE


def build_evidence_log(
    file_name: str,
    entities: Iterable[Entity],
    required_fields: Iterable[str | PIIType] = (),
    user_confirmed: bool = True,
) -> EvidenceLog:
    """Summarise the final entities of a document.

    Entity values are not recorded; each entry holds category, confidence
    and the masked / kept-visible decision.
    """
    return EvidenceLog(
        file_name=file_name,
        detected_entities=[
            EvidenceEntry(
                category=e.category,
                confidence=e.confidence,
                action=entity_action(e),
                user_confirmed=user_confirmed,
            )
            for e in entities
        ],
        required_fields=[f.value if isinstance(f, PIIType) else str(f) for f in required_fields],
    )
