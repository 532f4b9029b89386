"""
Inference client — one review in, one structured analysis out.

The client is fail-soft: any transport, auth, timeout or parsing error is
logged, counted in `stats` and replaced by DEFAULT_RESULT. A single bad call
must never take the batch down with it.
"""
import asyncio
import json
import logging
import re
from collections import Counter
from typing import Any, Protocol

import google.generativeai as genai
import httpx

from .config import InferenceConfig
from .exceptions import ConfigurationError, InferenceFailure, InferenceTimeout

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful assistant that outputs strictly valid JSON."

DEFAULT_RESULT = {
    "sentiment": "Neutral",
    "confidence_score": None,
    "summary": "Analysis Failed",
    "pros": [],
    "cons": [],
}

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


def build_prompt(review_text: str) -> str:
    return f"""
    Analyze this review: "{review_text}".
    Return valid JSON ONLY with these fields:
    1. sentiment (Positive, Negative, Neutral)
    2. confidence_score (0.0 to 1.0)
    3. summary (max 10 words)
    4. pros (list of strings)
    5. cons (list of strings)
    """


def default_result() -> dict:
    return {**DEFAULT_RESULT, "pros": [], "cons": []}


def parse_response(content: str) -> dict:
    """Decode the model reply. Tolerates a ```json fence around the object."""
    match = _FENCE_RE.match(content or "")
    if match:
        content = match.group(1)
    try:
        result = json.loads(content)
    except (TypeError, ValueError) as e:
        raise InferenceFailure(f"Model reply is not JSON: {e}") from e
    if not isinstance(result, dict):
        raise InferenceFailure(f"Model reply is {type(result).__name__}, expected an object")
    return result


class InferenceTransport(Protocol):
    async def complete(self, prompt: str) -> str:
        ...


class OpenAIChatTransport:
    """Chat-completions call against any OpenAI-compatible endpoint."""

    def __init__(self, config: InferenceConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def complete(self, prompt: str) -> str:
        try:
            resp = await self._client.post(
                f"{self.config.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                json={
                    "model": self.config.model,
                    "messages": [
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    "temperature": self.config.temperature,
                },
            )
            resp.raise_for_status()
            return resp.json()["choices"][0]["message"]["content"]
        except httpx.TimeoutException as e:
            raise InferenceTimeout(f"LLM request timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise InferenceFailure(f"LLM request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise InferenceFailure(f"Unexpected LLM response shape: {e!r}") from e

    async def aclose(self):
        await self._client.aclose()


class GeminiTransport:
    def __init__(self, config: InferenceConfig):
        self.config = config
        genai.configure(api_key=config.api_key)
        self._model = genai.GenerativeModel(
            config.model,
            system_instruction=SYSTEM_PROMPT,
            generation_config={
                "response_mime_type": "application/json",
                "temperature": config.temperature,
            },
        )

    async def complete(self, prompt: str) -> str:
        resp = await self._model.generate_content_async(prompt)
        return resp.text

    async def aclose(self):
        pass


def build_transport(config: InferenceConfig) -> InferenceTransport:
    if config.provider == "openai":
        return OpenAIChatTransport(config)
    if config.provider == "gemini":
        return GeminiTransport(config)
    raise ConfigurationError(f"Unknown inference provider {config.provider!r}")


class InferenceClient:
    def __init__(self, transport: InferenceTransport, config: InferenceConfig):
        self.transport = transport
        self.config = config
        self.stats: Counter[str] = Counter()

    async def analyze(self, review_text: str) -> dict[str, Any]:
        self.stats["calls"] += 1
        if not review_text or not review_text.strip():
            self.stats["failed"] += 1
            logger.warning("Skipping inference for blank review text")
            return default_result()

        try:
            content = await asyncio.wait_for(
                self.transport.complete(build_prompt(review_text)),
                timeout=self.config.timeout_seconds,
            )
            result = parse_response(content)
        except (asyncio.TimeoutError, InferenceTimeout):
            self.stats["failed"] += 1
            self.stats["timeouts"] += 1
            logger.warning("Inference timed out (limit %.1fs)", self.config.timeout_seconds)
            return default_result()
        except Exception as e:
            # fail-soft: every error becomes the default result
            self.stats["failed"] += 1
            logger.warning("Inference failed: %s", e)
            return default_result()

        self.stats["succeeded"] += 1
        return result

    async def aclose(self):
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()
