"""
Google Gemini API client: the oracle behind every simulation mode.

Grounded calls enable the Google Search tool and return the web citations
Gemini attaches in groundingMetadata. HTTP failures are classified into the
oracle error taxonomy so the retry layer can tell rate limits apart.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from sportsim.config import get_settings
from sportsim.llm.errors import MissingCredential, OracleFailure, RateLimited

logger = logging.getLogger(__name__)

AUTH_MARKERS = ("API_KEY_INVALID", "API key not valid", "PERMISSION_DENIED")
QUOTA_MARKERS = ("RESOURCE_EXHAUSTED", "quota")


@dataclass
class GeminiResult:
    """Result from a Gemini API call."""

    text: str
    sources: list[dict] = field(default_factory=list)  # [{"uri": ..., "title": ...}]
    grounded: bool = False
    tokens_in: int = 0
    tokens_out: int = 0
    exec_ms: int = 0
    model_version: str = ""
    finish_reason: Optional[str] = None  # STOP, MAX_TOKENS, SAFETY, RECITATION, OTHER


class GeminiClient:
    """Async client for Google Gemini generateContent."""

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = get_settings()
        self.api_key = (api_key if api_key is not None else settings.GEMINI_API_KEY or "").strip()
        self.base_url = settings.GEMINI_BASE_URL.rstrip("/")
        self.model = settings.GEMINI_MODEL
        self.timeout = settings.ORACLE_TIMEOUT_SECONDS
        self.max_tokens = settings.GEMINI_MAX_TOKENS
        self.temperature = settings.ORACLE_TEMPERATURE

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Replace the cached access token (None/empty clears it)."""
        self.api_key = (api_key or "").strip()

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_payload(self, prompt: str, grounded: bool, temperature: Optional[float] = None) -> dict:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": self.max_tokens,
                "temperature": temperature if temperature is not None else self.temperature,
            },
        }
        if grounded:
            payload["tools"] = [{"google_search": {}}]
        return payload

    async def generate(
        self,
        prompt: str,
        *,
        grounded: bool = True,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> GeminiResult:
        """
        Generate text using Gemini API.

        Args:
            prompt: The prompt to send to the model.
            grounded: Enable live Google Search grounding.
            model: Override default model.
            temperature: Override default temperature.

        Returns:
            GeminiResult with generated text, citations and metadata.

        Raises:
            MissingCredential: No key configured, or the key was rejected.
            RateLimited: HTTP 429/503 or quota exhaustion.
            OracleFailure: Any other HTTP, timeout or transport failure.
        """
        if not self.api_key:
            raise MissingCredential("Gemini API key not configured")

        model_name = model or self.model
        client = await self._get_client()
        url = f"{self.base_url}/{model_name}:generateContent"

        start_time = time.time()
        try:
            response = await client.post(
                url,
                json=self.build_payload(prompt, grounded, temperature),
                headers={"x-goog-api-key": self.api_key},
            )
        except httpx.TimeoutException:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Gemini API timeout after {elapsed_ms}ms")
            raise OracleFailure("Gemini request timed out")
        except httpx.HTTPError as e:
            logger.error(f"Gemini transport error: {e}")
            raise OracleFailure(f"Gemini transport error: {e}")

        elapsed_ms = int((time.time() - start_time) * 1000)

        if response.status_code != 200:
            self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError:
            raise OracleFailure("Gemini returned a non-JSON envelope", status_code=response.status_code)
        if not isinstance(data, dict):
            logger.error(f"Gemini returned an unexpected envelope: {str(data)[:200]}")
            raise OracleFailure("Gemini returned an unexpected envelope", status_code=response.status_code)

        text, finish_reason = self._extract_text_and_reason(data)
        usage = data.get("usageMetadata") or {}
        if not isinstance(usage, dict):
            usage = {}

        if finish_reason and finish_reason != "STOP":
            logger.warning(
                f"Gemini finishReason={finish_reason} (tokens_out={usage.get('candidatesTokenCount', 0)}, "
                f"max_tokens={self.max_tokens}, text_len={len(text)})"
            )

        return GeminiResult(
            text=text,
            sources=self._extract_sources(data) if grounded else [],
            grounded=grounded,
            tokens_in=usage.get("promptTokenCount", 0),
            tokens_out=usage.get("candidatesTokenCount", 0),
            exec_ms=elapsed_ms,
            model_version=data.get("modelVersion", model_name),
            finish_reason=finish_reason,
        )

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        error_text = response.text[:500]
        logger.error(f"Gemini API error {status}: {error_text}")

        if status in (401, 403) or any(marker in error_text for marker in AUTH_MARKERS):
            raise MissingCredential(f"Gemini rejected the API key (HTTP {status})")
        if status in (429, 503) or any(marker in error_text for marker in QUOTA_MARKERS):
            raise RateLimited(f"HTTP {status}: {error_text}", status_code=status)
        raise OracleFailure(f"HTTP {status}: {error_text}", status_code=status)

    @staticmethod
    def _first_candidate(response: dict) -> dict:
        candidates = response.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return {}
        return candidates[0]

    def _extract_text_and_reason(self, response: dict) -> tuple[str, Optional[str]]:
        """Extract text and finishReason from Gemini response."""
        candidate = self._first_candidate(response)
        if not candidate:
            return "", None

        finish_reason = candidate.get("finishReason")

        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return "", finish_reason
        # Grounded answers may be split across several text parts
        text = "".join(
            part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
        return text, finish_reason

    def _extract_sources(self, response: dict) -> list[dict]:
        """Web citations from candidates[0].groundingMetadata.groundingChunks."""
        metadata = self._first_candidate(response).get("groundingMetadata")
        chunks = metadata.get("groundingChunks") if isinstance(metadata, dict) else None
        if not isinstance(chunks, list):
            return []
        sources = []
        for chunk in chunks:
            web = chunk.get("web") if isinstance(chunk, dict) else None
            if isinstance(web, dict) and web.get("uri"):
                sources.append({"uri": web["uri"], "title": web.get("title") or web["uri"]})
        return sources
