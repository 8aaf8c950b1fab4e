"""Ollama text generation client.

Wraps Ollama's native ``/api/generate`` endpoint with streaming disabled so a
single complete response comes back. Every failure mode (connection error,
timeout, non-2xx status, unreadable body) surfaces as ``GenerationFailure``;
callers decide how to degrade. There are no retries.
"""

from __future__ import annotations

import httpx
import structlog

from seawatch.errors import GenerationFailure
from seawatch.models.config import OllamaConfig
from seawatch.observability.metrics import llm_available, llm_requests_total

_logger = structlog.get_logger(component="llm_client")


class OllamaClient:
    """Async client for a single Ollama model.

    Uses a persistent httpx.AsyncClient connection pool; call aclose() during
    shutdown. A pre-built client may be injected for tests.
    """

    def __init__(self, config: OllamaConfig, http_client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(float(config.timeout_seconds)),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        self._available: bool = False

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def available(self) -> bool:
        """Result of the most recent health check or generation call."""
        return self._available

    async def health_check(self) -> bool:
        """GET /api/tags to check Ollama is up and the model is pulled.

        Never raises.
        """
        try:
            response = await self._client.get(f"{self._config.endpoint}/api/tags", timeout=5.0)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            self._set_available(False)
            _logger.warning("ollama_health_check_failed", error=str(exc))
            return False

        models = body.get("models", []) if isinstance(body, dict) else []
        names = [m.get("name", "") for m in models if isinstance(m, dict)]
        configured = self._config.model
        loaded = any(name == configured or name.split(":")[0] == configured.split(":")[0] for name in names)
        self._set_available(loaded)
        if not loaded:
            _logger.warning("ollama_model_not_loaded", model=configured, available_models=names)
        return loaded

    async def generate(self, prompt: str) -> str:
        """Send *prompt* and return the model's text.

        Returns "" when the envelope carries no text field.

        Raises:
            GenerationFailure: transport error, timeout, HTTP error status or
                a body that is not JSON.
        """
        payload = {"model": self._config.model, "prompt": prompt, "stream": False}
        try:
            response = await self._client.post(f"{self._config.endpoint}/api/generate", json=payload)
        except httpx.TimeoutException as exc:
            self._fail()
            raise GenerationFailure(f"Ollama request timed out after {self._config.timeout_seconds}s") from exc
        except httpx.TransportError as exc:
            self._fail(unreachable=True)
            raise GenerationFailure(f"Ollama unreachable: {exc}") from exc

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._fail()
            raise GenerationFailure(f"Ollama returned HTTP {exc.response.status_code}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            self._fail()
            raise GenerationFailure(f"Ollama response body not JSON: {exc}") from exc

        self._set_available(True)
        llm_requests_total.labels(success="true").inc()
        text = body.get("response") if isinstance(body, dict) else None
        return text if isinstance(text, str) else ""

    def _fail(self, unreachable: bool = False) -> None:
        llm_requests_total.labels(success="false").inc()
        if unreachable:
            self._set_available(False)

    def _set_available(self, value: bool) -> None:
        self._available = value
        llm_available.set(1.0 if value else 0.0)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def stop(self) -> None:
        await self.aclose()
