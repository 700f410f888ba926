"""HTTP client for the generative-language backend.

Requests go through the shared circuit breaker in a worker thread, so a
hanging or failing backend never blocks the event loop and repeated
failures stop hitting the network for a while.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
import pybreaker
from loguru import logger

from src.sentinel.core.circuit_breaker import genai_breaker
from src.sentinel.core.config import settings
from src.sentinel.core.exceptions import AnalysisUnavailableError


class GenAIClient:
    """Minimal ``generateContent`` client."""

    def __init__(
        self,
        api_key: str = settings.GENAI_API_KEY,
        model: str = settings.GENAI_MODEL,
        base_url: str = settings.GENAI_BASE_URL,
        timeout: float = settings.GENAI_TIMEOUT_SECONDS,
        breaker: pybreaker.CircuitBreaker = genai_breaker,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.breaker = breaker
        self.client = client or httpx.Client(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def generate(
        self,
        parts: List[str],
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate text (or JSON text when a schema is given).

        Raises:
            AnalysisUnavailableError: Backend unreachable, failing or circuit open
        """
        try:
            return await asyncio.to_thread(
                self.breaker.call, self._generate_sync, parts, response_schema
            )
        except pybreaker.CircuitBreakerError as e:
            logger.warning(f"GenAI backend skipped, circuit {self.breaker.current_state}")
            raise AnalysisUnavailableError(f"Circuit open: {e}") from e
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            raise AnalysisUnavailableError(f"GenAI request failed: {e}") from e

    def _generate_sync(
        self,
        parts: List[str],
        response_schema: Optional[Dict[str, Any]],
    ) -> str:
        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": p} for p in parts]}],
        }
        if response_schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }

        response = self.client.post(
            f"{self.base_url}/models/{self.model}:generateContent",
            headers={"x-goog-api-key": self.api_key},
            json=body,
        )
        response.raise_for_status()
        data = response.json()

        candidate = data["candidates"][0]
        text = "".join(part.get("text", "") for part in candidate["content"]["parts"])
        logger.debug(f"GenAI response: {len(text)} chars from {self.model}")
        return text

    def close(self) -> None:
        self.client.close()


def parse_json_text(raw: str) -> Any:
    """Parse model output that may be wrapped in a Markdown code fence."""
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.split("\n", 1)[1].rsplit("```", 1)[0]
    return json.loads(raw)
