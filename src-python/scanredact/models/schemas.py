"""Pydantic data models for the scanned-document redactor."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PIIType(str, enum.Enum):
    """Closed vocabulary of sensitive-information categories."""
    NATIONAL_ID = "NATIONAL_ID"    # 12-digit national ID (Verhoeff-checked)
    TAX_ID = "TAX_ID"              # AAAAA9999A permanent account number
    CREDIT_CARD = "CREDIT_CARD"
    PHONE = "PHONE"
    NAME = "NAME"
    ADDRESS = "ADDRESS"
    MEDICAL = "MEDICAL"
    EMAIL = "EMAIL"
    DOB = "DOB"
    SENSITIVE = "SENSITIVE"        # generic / unrecognised category


class DetectionSource(str, enum.Enum):
    """Which detection layer produced the entity."""
    DETERMINISTIC = "DETERMINISTIC"
    SEMANTIC = "SEMANTIC"
    HEURISTIC = "HEURISTIC"


class DetectionStage(str, enum.Enum):
    """Named pipeline stages, in execution order."""
    SPATIAL_MAP = "SPATIAL_MAP"
    DETERMINISTIC = "DETERMINISTIC"
    HEURISTIC = "HEURISTIC"
    SEMANTIC = "SEMANTIC"
    ZONE_MATCH = "ZONE_MATCH"
    MERGE = "MERGE"
    COMPLETE = "COMPLETE"

    @property
    def order(self) -> int:
        return list(DetectionStage).index(self)


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class Rect(BaseModel):
    """Axis-aligned rectangle in OCR image pixels (origin top-left)."""
    x: float
    y: float
    w: float = Field(ge=0.0)
    h: float = Field(ge=0.0)

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def area(self) -> float:
        return self.w * self.h


class PageRect(Rect):
    """A rectangle pinned to a page.

    A zero-size rect at the page origin is the "geometry unknown" sentinel
    emitted when alignment fails; it must never be painted as a redaction.
    """
    page_index: int = 0

    @classmethod
    def unknown(cls, page_index: int = 0) -> "PageRect":
        return cls(x=0.0, y=0.0, w=0.0, h=0.0, page_index=page_index)

    @property
    def is_unknown(self) -> bool:
        return self.x == 0.0 and self.y == 0.0 and self.w == 0.0 and self.h == 0.0


# ---------------------------------------------------------------------------
# OCR tokens
# ---------------------------------------------------------------------------

class Token(BaseModel):
    """One OCR-recognised word. Identity is its index in the page sequence."""
    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    bbox: Rect
    page_index: int = 0


class OCRPage(BaseModel):
    """Output of the OCR collaborator for a single page.

    ``full_text`` must list words in the same order as ``tokens`` for the
    character-offset alignment strategy to be meaningful.
    """
    page_index: int = 0
    tokens: list[Token] = []
    full_text: str = ""


class SpatialEntry(BaseModel):
    """A token plus the mutable ``redact`` flag used during zone matching."""
    text: str
    left: float
    top: float
    width: float
    height: float
    page_index: int = 0
    redact: bool = False

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


class RedactionZone(BaseModel):
    """A padded rectangle slated for redaction, before it becomes an Entity."""
    rect: Rect
    page_index: int = 0
    matched_phrase: str
    matched_token_texts: list[str] = []


# ---------------------------------------------------------------------------
# Detection results
# ---------------------------------------------------------------------------

class Entity(BaseModel):
    """A confirmed detection with geometry and a mask / keep-visible decision."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    category: PIIType
    value: str
    confidence: float = Field(ge=0.0, le=1.0)
    bbox: PageRect
    masked: bool = True
    source: DetectionSource

    @property
    def page_index(self) -> int:
        return self.bbox.page_index


class ProgressEvent(BaseModel):
    """One step of the detection pipeline, emitted in stage order."""
    stage: DetectionStage
    stage_index: int
    message: str = ""
    entities_found: int = 0


# ---------------------------------------------------------------------------
# Evidence log
# ---------------------------------------------------------------------------

class EvidenceEntry(BaseModel):
    category: PIIType
    confidence: float
    action: str                       # "masked" | "kept_visible"
    user_confirmed: bool = True


class EvidenceLog(BaseModel):
    """Audit record describing what was redacted and what was kept visible."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    file_name: str
    detected_entities: list[EvidenceEntry] = []
    required_fields: list[str] = []


# ---------------------------------------------------------------------------
# API Request / Response schemas
# ---------------------------------------------------------------------------

class DetectRequest(BaseModel):
    pages: list[OCRPage]
    required_fields: list[str] = []
    confidence_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    file_name: str = ""


class DetectResponse(BaseModel):
    entities: list[Entity] = []
    events: list[ProgressEvent] = []
    evidence: Optional[EvidenceLog] = None
