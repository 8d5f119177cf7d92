"""LLM-based PII detection — the semantic layer of the pipeline.

Holds the classifier prompts and turns raw model output into data the core
understands. Two response modes:

- **Forbidden list** (primary): a flat JSON array of verbatim strings that
  must be redacted; handed to the zone matcher.
- **Entity list** (legacy): ``[{"text": ..., "category": ...}]``; each item
  is aligned onto the tokens and becomes an Entity.

Model output is treated as untrusted prose: the first ``[...]`` block is
extracted, anything malformed parses to ``[]``.
"""

from __future__ import annotations

import json
import logging
import re as _re
from typing import Sequence

from scanredact.config import AppConfig, config
from scanredact.detection.alignment import align_text
from scanredact.detection.categories import map_category
from scanredact.detection.detection_config import SEMANTIC_CONFIDENCE
from scanredact.models.schemas import DetectionSource, Entity, Token

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

FORBIDDEN_SYSTEM_PROMPT = """\
You are a strict PII auditor for document redaction. Your job is to ensure \
maximum privacy.

RULES:
1. ANY number (national ID, phone, date of birth, ID numbers, postal codes) \
must be in the forbidden list UNLESS it is part of a required field.
2. ANY name of a person, organization, or government body must be in the \
forbidden list UNLESS "NAME" is a required field.
3. ANY address, location, state, or geographical reference must be in the \
forbidden list UNLESS "ADDRESS" is a required field.
4. Include headers, labels, logo text, watermarks, and boilerplate text that \
could identify the document type.
5. If a required field is "NAME", keep ALL name-related text visible. If \
"ADDRESS", keep ALL address-related text visible.
6. Be aggressive: when in doubt, add it to the forbidden list.
7. Return EACH item as it EXACTLY appears in the document text (verbatim copy).

Return ONLY a valid JSON array of strings. No explanation, no markdown.
Example: ["9876 5432 1098", "Government of India", "DOB: 01/01/1990", "Male"]
"""

FORBIDDEN_USER_TEMPLATE = """\
REQUIRED FIELDS (these must be KEPT VISIBLE): [{fields}]

DOCUMENT TEXT:
\"\"\"
{text}
\"\"\"

Identify every word, number, or phrase in this document that is NOT directly \
related to the required fields listed above.

JSON:"""

ENTITY_SYSTEM_PROMPT = """\
You are a PII (Personally Identifiable Information) detection system. Analyze \
the document text and identify ALL sensitive or private information that \
should be redacted.

Return ONLY a valid JSON array. Each item must have:
- "text": the EXACT text as it appears in the document (copy it verbatim)
- "category": one of: name, phone, email, address, aadhaar, pan, credit card, \
dob, medical, or a brief description if none fit

No PII found: []
"""

ENTITY_USER_TEMPLATE = """\
Find all PII in this text:

{text}

JSON:"""


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _extract_json_array(response: str) -> list:
    """Return the first JSON array found in *response*, or ``[]``."""
    response = (response or "").strip()

    # Handle markdown code blocks
    if response.startswith("```"):
        lines = response.split("\n")
        response = "\n".join(
            line for line in lines if not line.startswith("```")
        )

    try:
        findings = json.loads(response)
    except json.JSONDecodeError:
        findings = None
    if isinstance(findings, list):
        return findings

    # Prose around the array, or an object wrapping it: take the first
    # bracket that decodes to a complete list
    for match in _re.finditer(r"\[", response):
        try:
            findings, _ = _DECODER.raw_decode(response, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(findings, list):
            return findings

    logger.debug("No JSON array in classifier response: %s", response[:200])
    return []


def parse_forbidden_list(response: str) -> list[str]:
    """Non-empty string items of the response array, stripped."""
    items = _extract_json_array(response)
    forbidden = [item.strip() for item in items if isinstance(item, str) and item.strip()]
    if len(forbidden) != len(items):
        logger.debug("Dropped %d non-string or empty forbidden items", len(items) - len(forbidden))
    return forbidden


def parse_entity_items(response: str) -> list[tuple[str, str]]:
    """``(text, category)`` pairs, de-duplicated by case-folded text."""
    pairs: list[tuple[str, str]] = []
    seen: set[str] = set()
    for item in _extract_json_array(response):
        if not isinstance(item, dict):
            continue
        text = item.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        key = text.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        category = item.get("category") or item.get("type") or ""
        pairs.append((text.strip(), str(category)))
    return pairs


def entities_from_classification(
    response: str,
    tokens: Sequence[Token],
    page_index: int = 0,
    settings: AppConfig | None = None,
) -> list[Entity]:
    """Lift legacy entity-mode output into aligned SEMANTIC entities.

    Items that cannot be aligned onto the tokens are dropped rather than
    carried with the unknown-geometry sentinel.
    """
    settings = settings or config
    entities: list[Entity] = []
    for text, category in parse_entity_items(response):
        aligned = align_text(
            text, tokens, page_index,
            extra_range=settings.extra_script_range,
            partial_ratio=settings.align_partial_ratio,
        )
        if not aligned.found:
            continue
        entities.append(Entity(
            category=map_category(category),
            value=text,
            confidence=SEMANTIC_CONFIDENCE,
            bbox=aligned.rect,
            masked=True,
            source=DetectionSource.SEMANTIC,
        ))
    logger.info("Page %d: legacy classification yielded %d entities", page_index, len(entities))
    return entities
