"""scanredact — PII detection and redaction planning for scanned documents."""

__version__ = "0.1.0"
