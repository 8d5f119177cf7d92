"""LLM package — remote (OpenAI-compatible) semantic classifier."""
from scanredact.llm.remote_engine import RemoteClassifier  # noqa: F401
