"""Global application configuration."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from scanredact.detection import detection_config as dc

logger = logging.getLogger(__name__)


def _default_data_dir() -> Path:
    """Return the platform-appropriate data directory."""
    override = os.environ.get("SCANREDACT_DATA_DIR")
    if override:
        return Path(override)
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif os.uname().sysname == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "scanredact"


class AppConfig(BaseModel):
    """Application-wide settings — loaded once at startup."""

    data_dir: Path = Field(default_factory=_default_data_dir)

    # Semantic classifier: remote API (OpenAI-compatible)
    llm_api_url: str = ""                              # e.g. https://api.openai.com/v1
    llm_api_key: str = Field(                          # prefer SCANREDACT_LLM_API_KEY env var
        default_factory=lambda: os.environ.get("SCANREDACT_LLM_API_KEY", ""),
    )
    llm_api_model: str = ""                            # e.g. gpt-4o-mini
    llm_timeout: float = Field(default=60.0, gt=0.0)   # seconds per request
    semantic_enabled: bool = True

    # Retry around the classifier (rate-limit and timeout only)
    primary_max_attempts: int = Field(default=dc.PRIMARY_MAX_ATTEMPTS, ge=1)
    legacy_max_attempts: int = Field(default=dc.LEGACY_MAX_ATTEMPTS, ge=1)
    retry_initial_delay: float = Field(default=dc.RETRY_INITIAL_DELAY, ge=0.0)
    retry_backoff_factor: float = Field(default=dc.RETRY_BACKOFF_FACTOR, ge=1.0)

    # Detection
    confidence_threshold: float = Field(default=dc.DEFAULT_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)
    national_id_floor: float = Field(default=0.6, ge=0.0, le=1.0)
    card_number_floor: float = Field(default=0.5, ge=0.0, le=1.0)
    tax_id_floor: float = Field(default=0.7, ge=0.0, le=1.0)

    # Tuning parameters: heuristic, see detection_config.py
    extra_script_range: str = dc.EXTRA_SCRIPT_RANGE
    align_partial_ratio: float = Field(default=dc.ALIGN_PARTIAL_RATIO, gt=0.0, le=1.0)
    zone_partial_ratio: float = Field(default=dc.ZONE_PARTIAL_RATIO, gt=0.0, le=1.0)
    zone_lookahead_factor: int = Field(default=dc.ZONE_LOOKAHEAD_FACTOR, ge=1)
    redaction_padding: float = Field(default=dc.REDACTION_PADDING, ge=0.0)
    zone_row_tolerance: float = Field(default=dc.ZONE_ROW_TOLERANCE, ge=0.0)
    zone_merge_gap: float = Field(default=dc.ZONE_MERGE_GAP, ge=0.0)
    overlap_threshold: float = Field(default=dc.OVERLAP_THRESHOLD, ge=0.0, le=1.0)

    # Heuristic dictionary layer: term → category name
    dictionary_terms: dict[str, str] = {}

    # OCR
    tesseract_cmd: str = ""                            # Empty = auto-detect
    ocr_language: str = "eng"
    ocr_min_confidence: int = Field(default=30, ge=0, le=100)

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8920, ge=0, le=65535)   # 0 = random

    def model_post_init(self, __context: object) -> None:
        # Load any previously-saved user settings from disk
        self._load_user_settings()

    # ------------------------------------------------------------------
    # Persistence: user-editable settings are saved to a JSON sidecar
    # ------------------------------------------------------------------

    _PERSISTABLE_KEYS: set[str] = {
        "llm_api_url", "llm_api_model", "llm_timeout", "semantic_enabled",
        "primary_max_attempts", "legacy_max_attempts",
        "retry_initial_delay", "retry_backoff_factor",
        "confidence_threshold",
        "national_id_floor", "card_number_floor", "tax_id_floor",
        "extra_script_range", "align_partial_ratio", "zone_partial_ratio",
        "zone_lookahead_factor", "redaction_padding", "zone_row_tolerance",
        "zone_merge_gap", "overlap_threshold",
        "dictionary_terms",
        "tesseract_cmd", "ocr_language", "ocr_min_confidence",
    }

    @property
    def _settings_path(self) -> Path:
        return self.data_dir / "settings.json"

    def _load_user_settings(self) -> None:
        """Read persisted user settings from disk and apply them."""
        path = self._settings_path
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8-sig"))
            for key, value in data.items():
                if key in self._PERSISTABLE_KEYS and hasattr(self, key):
                    setattr(self, key, value)
            logger.info(f"Loaded user settings from {path}")
        except Exception as exc:
            logger.warning(f"Failed to load settings from {path}: {exc}")

    def save_user_settings(self) -> None:
        """Persist current user-editable settings to disk."""
        data = {k: getattr(self, k) for k in sorted(self._PERSISTABLE_KEYS) if hasattr(self, k)}
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._settings_path.write_text(
                json.dumps(data, indent=2, default=str),
                encoding="utf-8",
            )
            logger.info(f"Saved user settings to {self._settings_path}")
        except Exception as exc:
            logger.warning(f"Failed to save settings: {exc}")


# Singleton: importable from anywhere
config = AppConfig()
