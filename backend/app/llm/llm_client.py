"""
LLM Client

A centralised wrapper around the Ollama chat API used for sentiment
scoring, retrieval-augmented answers and recommendation blurbs.

This gives us a single place to:

* Configure the model name, host, timeout and default parameters.
* Retry transient failures with exponential backoff.
* Report whether the model is reachable so callers can fall back to
  their rule-based paths.
* Parse JSON out of model replies that wrap it in markdown fences.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Optional

import ollama

from backend.app.settings import DEFAULT_MODEL, Settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class LLMUnavailableError(RuntimeError):
    """Raised when the model is disabled or every attempt has failed."""


class ChatClient:
    """Thin, retrying wrapper over an ``ollama.Client``.

    Parameters
    ----------
    model : str | None
        Ollama model tag.  Defaults to ``DEFAULT_MODEL``.
    host : str | None
        Ollama server URL; ``None`` uses the library default.
    timeout : float
        Per-request timeout in seconds.
    max_retries : int
        Total attempts per call before giving up.
    backoff_base : float
        Attempt *n* waits ``backoff_base * 2 ** n`` seconds before retrying.
    default_temperature : float
        Temperature used when the caller does not specify one.
    enabled : bool
        When ``False`` the client never contacts the server.
    recheck_seconds : float
        How long a failed availability check is trusted before rechecking.

    Usage
    -----
    ::

        client = ChatClient()
        answer = client.chat("Which running shoes are in stock?")
    """

    _instance: Optional["ChatClient"] = None

    def __init__(
        self,
        model: str | None = None,
        host: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        default_temperature: float = 0.7,
        enabled: bool = True,
        recheck_seconds: float = 30.0,
    ) -> None:
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self.default_temperature = default_temperature
        self.enabled = enabled
        self.recheck_seconds = recheck_seconds
        self._available: Optional[bool] = None
        self._checked_at = 0.0
        self._client = ollama.Client(host=host, timeout=timeout)

    @classmethod
    def get_instance(cls, **kwargs) -> "ChatClient":
        """Return (and optionally create) the shared singleton."""
        if cls._instance is None:
            cls._instance = cls(**kwargs)
        return cls._instance

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatClient":
        """Shared client configured from *settings*."""
        return cls.get_instance(
            model=settings.llm_model,
            host=settings.llm_host,
            timeout=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
            backoff_base=settings.llm_backoff_seconds,
            enabled=settings.llm_enabled,
            recheck_seconds=settings.llm_recheck_seconds,
        )

    # Health checks
    def is_available(self, refresh: bool = False) -> bool:
        """Return ``True`` if the client is enabled and the model exists.

        A successful check is cached.  A failed one is retried once
        ``recheck_seconds`` have passed; pass ``refresh=True`` to
        re-check immediately.
        """
        if not self.enabled:
            return False

        now = time.monotonic()
        retry_due = (
            self._available is False
            and now - self._checked_at >= self.recheck_seconds
        )
        if self._available is None or refresh or retry_due:
            self._checked_at = now
            try:
                self._client.show(self.model)
                if self._available is False:
                    logger.info("Model '%s' is reachable again.", self.model)
                self._available = True
            except Exception as exc:
                logger.warning("Model '%s' is not reachable: %s", self.model, exc)
                self._available = False
        return self._available

    def check_ready(self) -> None:
        """Raise ``RuntimeError`` if Ollama / the model is not available."""
        if not self.enabled:
            raise RuntimeError("LLM features are disabled by configuration.")

        self._checked_at = time.monotonic()
        try:
            models = self._client.list()
            logger.info(
                "Ollama is running.  %d model(s) available.", len(models.models)
            )
        except Exception as exc:
            self._available = False
            raise RuntimeError(
                "Cannot connect to Ollama.  Make sure the Ollama service "
                f"is running.  Error: {exc}"
            ) from exc

        available = [m.model for m in models.models]
        if not any(m.startswith(self.model) for m in available):
            self._available = False
            raise RuntimeError(
                f"Model '{self.model}' is not available in Ollama.\n"
                f"  Run:  ollama pull {self.model}\n"
                f"  Available models: {available}"
            )

        self._available = True
        logger.info("Required model '%s' is available.", self.model)

    # Core chat methods
    def chat(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send a single-turn chat message and return the response text."""
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return self.chat_messages(
            messages, temperature=temperature, max_tokens=max_tokens
        )

    def chat_messages(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send an arbitrary message list and return the response text.

        Raises
        ------
        LLMUnavailableError
            If the client is disabled or all attempts fail.
        """
        if not self.enabled:
            raise LLMUnavailableError("LLM features are disabled.")

        options: dict[str, Any] = {
            "temperature": (
                self.default_temperature if temperature is None else temperature
            ),
        }
        if max_tokens is not None:
            options["num_predict"] = max_tokens

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self._client.chat(
                    model=self.model,
                    messages=messages,
                    options=options,
                )
                return (response.message.content or "").strip()
            except Exception as exc:
                logger.warning(
                    "LLM attempt %d/%d failed: %s", attempt, self.max_retries, exc
                )
                if attempt == self.max_retries:
                    raise LLMUnavailableError(
                        f"LLM request failed after {self.max_retries} attempts: {exc}"
                    ) from exc
                time.sleep(self.backoff_base * 2 ** attempt)

        raise LLMUnavailableError("LLM request was not attempted.")


def parse_json(content: str | None) -> dict[str, Any]:
    """Extract a JSON object from an LLM reply.

    Markdown code fences (```` ``` ```` or ```` ```json ````) are stripped
    first.  Anything that does not decode to a JSON object yields ``{}``;
    this never raises.
    """
    if not content:
        return {}

    cleaned = content
    if "```" in content:
        match = _FENCE_RE.search(content)
        if match and match.group(1):
            cleaned = match.group(1)

    try:
        parsed = json.loads(cleaned.strip())
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("Failed to parse JSON from LLM: %s (raw: %.200s)", exc, content)
        return {}

    if not isinstance(parsed, dict):
        logger.warning("LLM returned JSON %s, expected an object.", type(parsed).__name__)
        return {}
    return parsed
