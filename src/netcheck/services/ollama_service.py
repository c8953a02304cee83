"""
Makes sure the configured Ollama model is present before any run uses it.

Nothing works without the model, so the API validates it at startup and the engine re-checks
before each run.  Every method reports problems as ``False`` and logs them instead of raising.
"""

import logging
from typing import Any

import httpx

from netcheck.config import settings

logger = logging.getLogger(__name__)


class OllamaModelService:
    """Availability checks and pulls against an Ollama server."""

    def __init__(
        self,
        endpoint: str | None = None,
        model: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = (endpoint or settings.OLLAMA_ENDPOINT).rstrip("/")
        self.model = model or settings.OLLAMA_MODEL
        self._client = http_client or httpx.AsyncClient(timeout=settings.MODEL_TIMEOUT_SECONDS)
        logger.info("Ollama service using endpoint %s, model %s", self.endpoint, self.model)

    def _matches(self, name: Any) -> bool:
        if not isinstance(name, str):
            return False
        wanted = self.model.lower()
        name = name.lower()
        return name == wanted or name.split(":")[0] == wanted.split(":")[0]

    async def is_model_available(self) -> bool:
        """Return *True* if ``/api/tags`` lists the model (or another tag of its family)."""
        try:
            resp = await self._client.get(f"{self.endpoint}/api/tags")
            resp.raise_for_status()
            models = resp.json().get("models") or []
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error checking if model %s is available: %s", self.model, exc)
            return False

        for entry in models:
            if isinstance(entry, dict) and self._matches(entry.get("name")):
                logger.debug("Model %s found in available models", self.model)
                return True
        logger.debug("Model %s not found in available models", self.model)
        return False

    async def pull_model(self) -> bool:
        """Pull the model (blocking until Ollama reports completion), then re-check it."""
        logger.info("Pulling model %s. This may take several minutes...", self.model)
        try:
            resp = await self._client.post(
                f"{self.endpoint}/api/pull", json={"name": self.model, "stream": False}
            )
        except httpx.HTTPError as exc:
            logger.error("Error pulling model %s: %s", self.model, exc)
            return False

        if resp.is_error:
            logger.error(
                "Failed to pull model %s. Status: %d, Error: %s",
                self.model,
                resp.status_code,
                resp.text,
            )
            return False
        return await self.is_model_available()

    async def ensure_model_loaded(self) -> bool:
        """Check for the model and pull it when missing."""
        logger.info("Checking if model %s is available", self.model)
        if await self.is_model_available():
            logger.info("Model %s is already available", self.model)
            return True

        logger.warning("Model %s not found. Attempting to pull...", self.model)
        if await self.pull_model():
            logger.info("Model %s successfully pulled", self.model)
            return True

        logger.error("Failed to ensure model %s is available", self.model)
        return False

    async def aclose(self) -> None:
        await self._client.aclose()
