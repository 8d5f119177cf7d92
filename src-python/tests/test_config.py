"""Tests for AppConfig persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from scanredact.config import AppConfig


class TestUserSettings:
    def test_save_and_reload(self, tmp_path: Path):
        cfg = AppConfig(data_dir=tmp_path)
        cfg.confidence_threshold = 0.7
        cfg.dictionary_terms = {"Project Falcon": "sensitive"}
        cfg.save_user_settings()

        reloaded = AppConfig(data_dir=tmp_path)
        assert reloaded.confidence_threshold == 0.7
        assert reloaded.dictionary_terms == {"Project Falcon": "sensitive"}

    def test_api_key_not_persisted(self, tmp_path: Path):
        cfg = AppConfig(data_dir=tmp_path, llm_api_key="sk-secret")
        cfg.save_user_settings()

        data = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
        assert "llm_api_key" not in data
        assert "sk-secret" not in (tmp_path / "settings.json").read_text(encoding="utf-8")

    def test_unknown_keys_ignored(self, tmp_path: Path):
        (tmp_path / "settings.json").write_text(
            json.dumps({"port": 1, "overlap_threshold": 0.25}), encoding="utf-8",
        )
        cfg = AppConfig(data_dir=tmp_path)
        assert cfg.port == 8920
        assert cfg.overlap_threshold == 0.25

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path: Path, caplog: pytest.LogCaptureFixture):
        (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")
        cfg = AppConfig(data_dir=tmp_path)
        assert cfg.confidence_threshold == 0.5
        assert any("Failed to load settings" in r.getMessage() for r in caplog.records)
