"""Redaction pipeline — runs every detection layer on one page and merges
the results into the final entity set.

Stage order::

    SPATIAL_MAP → DETERMINISTIC → HEURISTIC → SEMANTIC → ZONE_MATCH → MERGE → COMPLETE

The semantic classifier is the only unreliable collaborator. Its calls go
through :func:`call_with_retry`; when both the forbidden-list call and the
legacy entity call give up, the run carries on with the layers that
succeeded.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterable, Iterator, Optional, TypeVar

from scanredact.config import AppConfig, config
from scanredact.detection.dictionary_detector import DictionaryDetector
from scanredact.detection.llm_detector import entities_from_classification, parse_forbidden_list
from scanredact.detection.merge import merge_layers
from scanredact.detection.regex_detector import run_deterministic_layer
from scanredact.detection.zone_matcher import (
    build_spatial_map,
    calculate_redaction_zones,
    zones_to_entities,
)
from scanredact.exceptions import ClassifierError, PipelineCancelled
from scanredact.models.schemas import (
    DetectionStage,
    Entity,
    OCRPage,
    PIIType,
    ProgressEvent,
    SpatialEntry,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_PENDING = "pending"
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_FAILED = "failed"


# ---------------------------------------------------------------------------
# Retry with exponential backoff
# ---------------------------------------------------------------------------

def call_with_retry(
    call: Callable[[], T],
    *,
    max_attempts: int,
    initial_delay: float,
    backoff_factor: float,
    wait: Callable[[float], None] = time.sleep,
    label: str = "classifier",
) -> T:
    """Invoke *call*, retrying rate-limit and timeout failures.

    The k-th retry waits ``initial_delay × backoff_factor**k``. Errors
    that are not retryable propagate immediately, as does the last error
    once *max_attempts* is exhausted. *wait* may raise
    :class:`PipelineCancelled` to abort a pending retry.
    """
    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        try:
            return call()
        except ClassifierError as exc:
            if not exc.retryable or attempt >= max_attempts:
                raise
            logger.warning(
                "%s failed: %s (attempt %d/%d), retrying in %.1fs",
                label, exc, attempt, max_attempts, delay,
            )
            wait(delay)
            delay *= backoff_factor
    # Only reached when max_attempts < 1
    raise ClassifierError(f"{label}: no attempts allowed (max_attempts={max_attempts})")


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class RedactionPipeline:
    """Wires the detection layers together.

    Args:
        classifier: Object exposing ``forbidden_phrases(text, required_fields)``
            and ``classify_entities(text)`` (e.g. an open ``RemoteClassifier``).
            ``None`` disables the semantic layer.
        heuristic: Optional :class:`DictionaryDetector`; defaults to one
            built from ``settings.dictionary_terms``.
        settings: Configuration; defaults to the global ``config``.
        sleep: Backoff wait override. Called with the delay in seconds.
    """

    def __init__(
        self,
        classifier=None,
        heuristic: Optional[DictionaryDetector] = None,
        settings: Optional[AppConfig] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.settings = settings or config
        self.classifier = classifier
        self.heuristic = heuristic if heuristic is not None else DictionaryDetector.from_config(self.settings)
        self.sleep = sleep

    def start(
        self,
        page: OCRPage,
        required_fields: Iterable[str | PIIType] = (),
        confidence_threshold: Optional[float] = None,
    ) -> "PipelineRun":
        """Prepare a run; iterate it (or call ``run()``) to execute."""
        return PipelineRun(self, page, list(required_fields), confidence_threshold)

    def process(
        self,
        page: OCRPage,
        required_fields: Iterable[str | PIIType] = (),
        confidence_threshold: Optional[float] = None,
    ) -> list[Entity]:
        """Run every stage to completion and return the final entities."""
        return self.start(page, required_fields, confidence_threshold).run()


class PipelineRun:
    """One execution of the pipeline over a single page.

    Iterating yields :class:`ProgressEvent` objects in stage order. ``cancel()``
    is safe to call from another thread; the run stops at the next stage
    boundary or backoff wait by raising :class:`PipelineCancelled`.
    """

    def __init__(
        self,
        pipeline: RedactionPipeline,
        page: OCRPage,
        required_fields: list[str | PIIType],
        confidence_threshold: Optional[float],
    ) -> None:
        self._pipeline = pipeline
        self._settings = pipeline.settings
        self.page = page
        self.required_fields = required_fields
        self.confidence_threshold = (
            confidence_threshold
            if confidence_threshold is not None
            else self._settings.confidence_threshold
        )
        self.status: str = STATUS_PENDING
        self.stage: Optional[DetectionStage] = None
        self.events: list[ProgressEvent] = []
        self.result: Optional[list[Entity]] = None
        self._cancel_event = threading.Event()
        self._steps = self._execute()

    # ── Control ───────────────────────────────────────────────────

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def __iter__(self) -> Iterator[ProgressEvent]:
        return self

    def __next__(self) -> ProgressEvent:
        return next(self._steps)

    def run(self) -> list[Entity]:
        """Drain all stages and return the final entities."""
        for _ in self:
            pass
        return self.result or []

    # ── Internals ─────────────────────────────────────────────────

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise PipelineCancelled(
                f"Run cancelled on page {self.page.page_index} before {self.stage}"
            )

    def _wait(self, delay: float) -> None:
        if self._pipeline.sleep is not None:
            self._pipeline.sleep(delay)
        else:
            self._cancel_event.wait(delay)
        self._check_cancelled()

    def _emit(self, stage: DetectionStage, message: str, entities_found: int = 0) -> ProgressEvent:
        event = ProgressEvent(
            stage=stage,
            stage_index=stage.order,
            message=message,
            entities_found=entities_found,
        )
        self.events.append(event)
        return event

    def _retry(self, call: Callable[[], T], max_attempts: int, label: str) -> T:
        return call_with_retry(
            call,
            max_attempts=max_attempts,
            initial_delay=self._settings.retry_initial_delay,
            backoff_factor=self._settings.retry_backoff_factor,
            wait=self._wait,
            label=label,
        )

    def _execute(self) -> Iterator[ProgressEvent]:
        self.status = STATUS_RUNNING
        try:
            yield from self._stages()
        except PipelineCancelled:
            self.status = STATUS_CANCELLED
            logger.info("Page %d: run cancelled at %s", self.page.page_index, self.stage)
            raise
        except Exception:
            self.status = STATUS_FAILED
            raise
        self.status = STATUS_COMPLETED

    def _enter(self, stage: DetectionStage) -> None:
        self._check_cancelled()
        self.stage = stage

    def _stages(self) -> Iterator[ProgressEvent]:
        settings = self._settings
        page = self.page
        page_index = page.page_index
        text = page.full_text
        tokens = page.tokens

        # ── Spatial map ──
        self._enter(DetectionStage.SPATIAL_MAP)
        spatial_map: list[SpatialEntry] = build_spatial_map(tokens, page_index)
        yield self._emit(DetectionStage.SPATIAL_MAP, f"Mapped {len(spatial_map)} tokens")

        # ── Deterministic layer ──
        self._enter(DetectionStage.DETERMINISTIC)
        deterministic = run_deterministic_layer(text, tokens, page_index, settings)
        yield self._emit(
            DetectionStage.DETERMINISTIC,
            "Pattern and checksum scan",
            len(deterministic),
        )

        # ── Heuristic layer ──
        self._enter(DetectionStage.HEURISTIC)
        heuristic: list[Entity] = []
        if self._pipeline.heuristic is not None:
            heuristic = self._pipeline.heuristic.detect(text, tokens, page_index, settings)
            message = "Dictionary scan"
        else:
            message = "Dictionary scan skipped (no terms)"
        yield self._emit(DetectionStage.HEURISTIC, message, len(heuristic))

        # ── Semantic layer ──
        self._enter(DetectionStage.SEMANTIC)
        forbidden, legacy_entities, message = self._run_semantic(text)
        yield self._emit(
            DetectionStage.SEMANTIC,
            message,
            len(forbidden) + len(legacy_entities),
        )

        # ── Phrase → zone matching ──
        self._enter(DetectionStage.ZONE_MATCH)
        zone_entities: list[Entity] = []
        if forbidden:
            zones = calculate_redaction_zones(
                spatial_map,
                forbidden,
                [f.value if isinstance(f, PIIType) else str(f) for f in self.required_fields],
                padding=settings.redaction_padding,
                partial_ratio=settings.zone_partial_ratio,
                lookahead_factor=settings.zone_lookahead_factor,
                extra_range=settings.extra_script_range,
                row_tolerance=settings.zone_row_tolerance,
                merge_gap=settings.zone_merge_gap,
            )
            zone_entities = zones_to_entities(zones)
        yield self._emit(
            DetectionStage.ZONE_MATCH,
            f"Matched {len(forbidden)} forbidden phrases",
            len(zone_entities),
        )

        # ── Merge ──
        self._enter(DetectionStage.MERGE)
        merged = merge_layers(
            deterministic + heuristic + legacy_entities + zone_entities,
            self.confidence_threshold,
            self.required_fields,
            overlap_threshold=settings.overlap_threshold,
        )
        yield self._emit(DetectionStage.MERGE, "Merged detection layers", len(merged))

        self._enter(DetectionStage.COMPLETE)
        self.result = merged
        logger.info(
            "Page %d: %d entities (%d masked)",
            page_index, len(merged), sum(1 for e in merged if e.masked),
        )
        yield self._emit(DetectionStage.COMPLETE, "Detection complete", len(merged))

    def _run_semantic(self, text: str) -> tuple[list[str], list[Entity], str]:
        """Forbidden-list call, then legacy entity call, then give up."""
        classifier = self._pipeline.classifier
        settings = self._settings
        page_index = self.page.page_index

        if classifier is None or not settings.semantic_enabled:
            return [], [], "Semantic classifier disabled"
        if not text.strip():
            return [], [], "Semantic classifier skipped (empty page)"

        fields = [f.value if isinstance(f, PIIType) else str(f) for f in self.required_fields]
        try:
            raw = self._retry(
                lambda: classifier.forbidden_phrases(text, fields),
                settings.primary_max_attempts,
                "Forbidden-list request",
            )
            forbidden = parse_forbidden_list(raw)
            logger.info("Page %d: classifier returned %d forbidden phrases", page_index, len(forbidden))
            return forbidden, [], "Forbidden-list classification"
        except ClassifierError as exc:
            logger.warning(
                "Page %d: forbidden-list request failed (%s), falling back to entity mode",
                page_index, exc,
            )

        try:
            raw = self._retry(
                lambda: classifier.classify_entities(text),
                settings.legacy_max_attempts,
                "Entity request",
            )
        except ClassifierError as exc:
            logger.warning(
                "Page %d: semantic layer unavailable (%s), continuing without it",
                page_index, exc,
            )
            return [], [], "Semantic classifier unavailable"

        entities = entities_from_classification(raw, self.page.tokens, page_index, settings)
        return [], entities, "Entity classification (fallback)"
