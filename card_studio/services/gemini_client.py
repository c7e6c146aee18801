"""Gemini text generation client.

Calls ``models/{model}:generateContent`` over the REST API and walks the
configured model chain until one returns text.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from card_studio.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_OUTPUT_TOKENS = 200
DEFAULT_TOP_K = 40
DEFAULT_TOP_P = 0.95


class GeminiError(Exception):
    """No model in the chain produced text."""


class GeminiClient:
    """Thin async wrapper over the Gemini REST API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        models: Optional[List[str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.models = list(models or ["gemini-2.0-flash", "gemini-1.5-flash"])
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> Optional[str]:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        text = (text or "").strip()
        return text or None

    async def _generate_with_model(
        self,
        client: httpx.AsyncClient,
        model: str,
        prompt: str,
        generation_config: Dict[str, Any],
    ) -> str:
        url = f"{self.base_url}/models/{model}:generateContent"
        response = await client.post(
            url,
            params={"key": self.api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": generation_config,
            },
        )
        response.raise_for_status()
        text = self._extract_text(response.json())
        if not text:
            raise GeminiError(f"{model} returned no text")
        return text

    async def generate_content(
        self,
        prompt: str,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        top_k: int = DEFAULT_TOP_K,
        top_p: float = DEFAULT_TOP_P,
    ) -> str:
        """Return generated text from the first model that succeeds.

        Raises:
            GeminiError: missing API key, or every model failed (non-2xx,
                malformed JSON, empty candidates).
        """
        if not self.enabled:
            raise GeminiError("GEMINI_API_KEY not configured")

        generation_config = {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
            "topK": top_k,
            "topP": top_p,
        }
        failures: List[str] = []
        async with self._client() as client:
            for model in self.models:
                t_start = time.monotonic()
                try:
                    text = await self._generate_with_model(client, model, prompt, generation_config)
                except httpx.HTTPStatusError as exc:
                    logger.warning(
                        "Gemini %s HTTP %s: %s", model, exc.response.status_code, exc.response.text[:300]
                    )
                    failures.append(f"{model}: HTTP {exc.response.status_code}")
                    continue
                except ValueError as exc:
                    # response.json() on a non-JSON body
                    logger.warning("Gemini %s returned malformed JSON: %s", model, exc)
                    failures.append(f"{model}: malformed response")
                    continue
                except (httpx.HTTPError, GeminiError) as exc:
                    logger.warning("Gemini %s failed: %s", model, exc)
                    failures.append(f"{model}: {exc}")
                    continue

                logger.info("Gemini %s generated %d chars in %.2fs", model, len(text), time.monotonic() - t_start)
                return text

        raise GeminiError("All Gemini models failed: " + "; ".join(failures))

    async def list_models(self) -> List[str]:
        if not self.enabled:
            raise GeminiError("GEMINI_API_KEY not configured")
        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}/models", params={"key": self.api_key})
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GeminiError(f"Could not list models: {exc}") from exc
        return [m.get("name", "").removeprefix("models/") for m in data.get("models", [])]

    async def check_status(self) -> Dict[str, Any]:
        """Check the chain with a tiny prompt."""
        if not self.enabled:
            return {"working": False, "error": "GEMINI_API_KEY not configured"}
        try:
            text = await self.generate_content("Responda apenas: OK", max_output_tokens=10, temperature=0)
        except GeminiError as exc:
            return {"working": False, "error": str(exc)}
        return {"working": True, "models": self.models, "sample": text[:50]}


def get_gemini_client() -> Optional[GeminiClient]:
    """Client from settings, or None when no API key is configured."""
    settings = get_settings()
    if not settings.GEMINI_API_KEY:
        logger.debug("GEMINI_API_KEY not configured - descriptions will use the fallback template")
        return None
    return GeminiClient(
        api_key=settings.GEMINI_API_KEY,
        base_url=settings.GEMINI_BASE_URL,
        models=settings.GEMINI_MODELS,
        timeout=settings.GEMINI_TIMEOUT_SECONDS,
    )
