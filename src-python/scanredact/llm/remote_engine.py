"""Remote semantic classifier — calls an OpenAI-compatible chat-completion API.

Supports any provider that exposes the ``/chat/completions`` endpoint:
OpenAI, Azure OpenAI, Groq, Together, Mistral, local vLLM / Ollama
servers, etc.

Each ``RemoteClassifier`` owns one ``httpx.Client`` for the lifetime of a
``with`` block. Every call is a single attempt; failures surface as typed
exceptions and the retry policy lives with the pipeline orchestrator.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import httpx

from scanredact.config import AppConfig, config
from scanredact.detection.llm_detector import (
    FORBIDDEN_SYSTEM_PROMPT,
    FORBIDDEN_USER_TEMPLATE,
    ENTITY_SYSTEM_PROMPT,
    ENTITY_USER_TEMPLATE,
)
from scanredact.exceptions import ClassifierError, ClassifierTimeoutError, RateLimitedError

logger = logging.getLogger(__name__)

_DEFAULT_REQUEST_TIMEOUT = 60.0


class RemoteClassifier:
    """
    OpenAI-compatible remote classifier wrapper.

    Usage:
        with RemoteClassifier.from_config() as classifier:
            raw = classifier.forbidden_phrases(text, ["NAME"])
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        timeout: float = _DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    @classmethod
    def from_config(
        cls,
        settings: AppConfig | None = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "RemoteClassifier":
        settings = settings or config
        return cls(
            settings.llm_api_url,
            settings.llm_api_key,
            settings.llm_api_model,
            timeout=settings.llm_timeout,
            transport=transport,
        )

    # ── Lifecycle ─────────────────────────────────────────────────

    def __enter__(self) -> "RemoteClassifier":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
        )
        logger.info(
            "Remote classifier opened: url=%s model=%s timeout=%ss",
            self._api_url, self._model, self._timeout,
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def is_configured(self) -> bool:
        """Return True when URL, key and model are all set."""
        return bool(self._api_url and self._api_key and self._model)

    @property
    def model_name(self) -> str:
        return self._model

    # ── Classifier operations ─────────────────────────────────────

    def forbidden_phrases(self, text: str, required_fields: Iterable[str]) -> str:
        """Ask for every verbatim phrase NOT related to *required_fields*.

        Returns the raw model text; parsing is the caller's job.
        """
        fields = ", ".join(str(f) for f in required_fields)
        return self.generate(
            system_prompt=FORBIDDEN_SYSTEM_PROMPT,
            user_prompt=FORBIDDEN_USER_TEMPLATE.format(fields=fields, text=text),
            max_tokens=4096,
            temperature=0.1,
            top_p=0.8,
        )

    def classify_entities(self, text: str) -> str:
        """Ask for ``[{"text", "category"}]`` entities (legacy mode)."""
        return self.generate(
            system_prompt=ENTITY_SYSTEM_PROMPT,
            user_prompt=ENTITY_USER_TEMPLATE.format(text=text),
            max_tokens=2048,
            temperature=0.1,
            top_p=0.8,
        )

    # ── Generation ────────────────────────────────────────────────

    def generate(
        self,
        system_prompt: str = "",
        user_prompt: str = "",
        max_tokens: int = 1024,
        temperature: float = 0.1,
        top_p: float = 0.95,
    ) -> str:
        """Call the remote chat-completion endpoint once."""
        if not self.is_configured():
            raise ClassifierError(
                "Remote classifier not configured. Set API URL, key, and model first."
            )
        if self._client is None:
            raise ClassifierError("Remote classifier is closed, use it inside a with block")

        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        payload: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": top_p,
        }
        return self._call(f"{self._api_url}/chat/completions", payload)

    def _call(self, url: str, payload: dict) -> str:
        """Single HTTP POST mapped onto the classifier exception types."""
        try:
            resp = self._client.post(url, json=payload)
            resp.raise_for_status()
            data = resp.json()
            # Standard OpenAI response shape
            text = data["choices"][0]["message"]["content"]
            return (text or "").strip()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text[:500]
            if status == 429:
                logger.warning("Remote classifier rate-limited (HTTP 429)")
                raise RateLimitedError(f"Classifier rate limit: {body}", status_code=status) from e
            logger.error("Remote classifier HTTP %s: %s", status, body)
            raise ClassifierError(f"Classifier API error {status}: {body}", status_code=status) from e

        except httpx.TimeoutException as e:
            logger.warning("Remote classifier timed out after %ss", self._timeout)
            raise ClassifierTimeoutError("Classifier request timed out") from e

        except httpx.HTTPError as e:
            logger.error("Remote classifier request failed: %s", e)
            raise ClassifierError(f"Classifier request failed: {e}") from e

        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error("Unexpected classifier response shape: %s", e)
            raise ClassifierError("Malformed classifier response") from e
