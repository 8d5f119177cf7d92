"""FastAPI application — HTTP surface of the scanredact service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scanredact import __version__
from scanredact.api.routers import detection

logger = logging.getLogger(__name__)

app = FastAPI(
    title="scanredact",
    version=__version__,
    description="PII detection and redaction-zone planning for scanned documents",
)

# CORS: local review UI and dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(detection.router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
