"""Integration tests for the API routers.

Uses httpx + ASGITransport to hit the FastAPI app without a real server.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import scanredact.ocr.engine as ocr_engine
from scanredact import __version__
from scanredact.api.deps import get_classifier
from scanredact.api.server import app


@pytest_asyncio.fixture
async def client():
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def _page_json(lines: list[list[str]], page_index: int = 0) -> dict:
    tokens = []
    for row, words in enumerate(lines):
        x = 10.0
        for w in words:
            tokens.append({
                "text": w,
                "bbox": {"x": x, "y": 20.0 + row * 30.0, "w": 10.0 * len(w), "h": 14.0},
                "page_index": page_index,
            })
            x += 10.0 * len(w) + 6
    return {
        "page_index": page_index,
        "tokens": tokens,
        "full_text": "\n".join(" ".join(words) for words in lines),
    }


ID_LINES = [["Aadhaar:", "2341", "2341", "2346"], ["Name:", "John", "Doe"]]


class FakeClassifier:
    def forbidden_phrases(self, text, required_fields):
        return '["John Doe"]'

    def classify_entities(self, text):
        return "[]"


# ───────────────────────── Health ─────────────────────────

class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__}


# ───────────────────────── Detection ─────────────────────────

class TestDetect:
    @pytest.mark.asyncio
    async def test_local_layers_only(self, client: AsyncClient):
        resp = await client.post("/api/detect", json={
            "pages": [_page_json(ID_LINES)],
            "file_name": "card.png",
        })
        assert resp.status_code == 200
        body = resp.json()

        assert [e["category"] for e in body["entities"]] == ["NATIONAL_ID"]
        assert body["entities"][0]["source"] == "DETERMINISTIC"
        assert [e["stage"] for e in body["events"]][-1] == "COMPLETE"
        assert len(body["events"]) == 7
        evidence = body["evidence"]
        assert evidence["file_name"] == "card.png"
        assert evidence["detected_entities"][0]["action"] == "masked"

    @pytest.mark.asyncio
    async def test_required_field_kept_visible(self, client: AsyncClient):
        resp = await client.post("/api/detect", json={
            "pages": [_page_json(ID_LINES)],
            "required_fields": ["NATIONAL_ID"],
        })
        body = resp.json()
        assert body["entities"][0]["masked"] is False
        assert body["evidence"]["detected_entities"][0]["action"] == "kept_visible"
        assert body["evidence"]["file_name"] == "document"
        assert body["evidence"]["required_fields"] == ["NATIONAL_ID"]

    @pytest.mark.asyncio
    async def test_with_classifier(self, client: AsyncClient):
        app.dependency_overrides[get_classifier] = lambda: FakeClassifier()
        resp = await client.post("/api/detect", json={"pages": [_page_json(ID_LINES)]})
        body = resp.json()

        by_source = {e["source"]: e for e in body["entities"]}
        assert set(by_source) == {"DETERMINISTIC", "SEMANTIC"}
        assert by_source["SEMANTIC"]["value"] == "John Doe"

    @pytest.mark.asyncio
    async def test_pages_processed_in_order(self, client: AsyncClient):
        resp = await client.post("/api/detect", json={
            "pages": [_page_json(ID_LINES, page_index=1), _page_json([["blank"]], page_index=0)],
        })
        events = resp.json()["events"]
        assert len(events) == 14
        assert events[6]["entities_found"] == 0
        assert events[13]["entities_found"] == 1

    @pytest.mark.asyncio
    async def test_invalid_threshold_rejected(self, client: AsyncClient):
        resp = await client.post("/api/detect", json={"pages": [], "confidence_threshold": 1.5})
        assert resp.status_code == 422


# ───────────────────────── OCR ─────────────────────────

class TestOCR:
    @pytest.mark.asyncio
    async def test_unsupported_type(self, client: AsyncClient):
        resp = await client.post("/api/ocr", files={"file": ("notes.txt", b"hello", "text/plain")})
        assert resp.status_code == 415

    @pytest.mark.asyncio
    async def test_empty_upload(self, client: AsyncClient):
        resp = await client.post("/api/ocr", files={"file": ("scan.png", b"", "image/png")})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_tesseract_missing(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(ocr_engine, "_tesseract_available", False)
        resp = await client.post("/api/ocr", files={"file": ("scan.png", b"\x89PNG", "image/png")})
        assert resp.status_code == 503
