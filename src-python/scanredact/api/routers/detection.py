"""PII detection and OCR endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from scanredact.api.deps import get_classifier
from scanredact.detection.pipeline import RedactionPipeline
from scanredact.evidence import build_evidence_log
from scanredact.exceptions import OCRUnavailableError
from scanredact.llm.remote_engine import RemoteClassifier
from scanredact.models.schemas import (
    DetectRequest,
    DetectResponse,
    Entity,
    OCRPage,
    ProgressEvent,
)
from scanredact.ocr.engine import SUPPORTED_MIME_TYPES, ocr_page_image

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["detection"])


@router.post("/detect", response_model=DetectResponse)
async def detect(
    req: DetectRequest,
    classifier: Optional[RemoteClassifier] = Depends(get_classifier),
) -> DetectResponse:
    """Run the redaction pipeline on every page, serially in page order."""
    pipeline = RedactionPipeline(classifier=classifier)

    def _run_pages() -> tuple[list[Entity], list[ProgressEvent]]:
        entities: list[Entity] = []
        events: list[ProgressEvent] = []
        for page in sorted(req.pages, key=lambda p: p.page_index):
            run = pipeline.start(page, req.required_fields, req.confidence_threshold)
            events.extend(run)
            entities.extend(run.result or [])
        return entities, events

    entities, events = await run_in_threadpool(_run_pages)
    logger.info(f"Detection finished: {len(req.pages)} page(s), {len(entities)} entities")

    evidence = build_evidence_log(req.file_name or "document", entities, req.required_fields)
    return DetectResponse(entities=entities, events=events, evidence=evidence)


@router.post("/ocr", response_model=OCRPage)
async def ocr(
    file: UploadFile = File(...),
    page_index: int = Query(0, ge=0),
) -> OCRPage:
    """OCR an uploaded page image into tokens and full text."""
    mime_type = (file.content_type or "").lower()
    if mime_type not in SUPPORTED_MIME_TYPES:
        raise HTTPException(415, detail=f"Unsupported image type: {mime_type or 'unknown'}")

    data = await file.read()
    if not data:
        raise HTTPException(400, detail="Empty upload")

    try:
        return await run_in_threadpool(ocr_page_image, data, mime_type, page_index)
    except OCRUnavailableError as e:
        raise HTTPException(503, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(400, detail=str(e)) from e
