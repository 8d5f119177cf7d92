"""Shared helpers and dependencies used by the API routers."""

from __future__ import annotations

import logging
from typing import Generator, Optional

from scanredact.config import config
from scanredact.llm.remote_engine import RemoteClassifier

logger = logging.getLogger(__name__)


def get_classifier() -> Generator[Optional[RemoteClassifier], None, None]:
    """Open a classifier for the duration of one request.

    Yields ``None`` when the semantic layer is disabled or not configured,
    in which case the pipeline runs the local layers only.
    """
    if not config.semantic_enabled:
        yield None
        return

    classifier = RemoteClassifier.from_config(config)
    if not classifier.is_configured():
        logger.info("Semantic classifier not configured, running local layers only")
        yield None
        return

    with classifier:
        yield classifier
