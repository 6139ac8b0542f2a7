"""
rag/generation.py
=================

Clients for the external text-generation service.

Both single-shot and streaming responses are exposed the same way: an async
iterator of text fragments. A single-shot call yields exactly one fragment;
a streaming call yields one per JSON object received. Stopping the iteration
(or cancelling the consuming task) closes the underlying request.

Usage:
    client = get_generation_client()
    async for fragment in client.generate(prompt):
        ...
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, AsyncIterator, Iterator, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from config import (
    GENERATION_PROVIDER,
    LLM_MAX_TOKENS,
    LLM_MIROSTAT,
    LLM_MIROSTAT_ETA,
    LLM_MIROSTAT_TAU,
    LLM_MODEL,
    LLM_REPEAT_PENALTY,
    LLM_STREAM,
    LLM_TEMPERATURE,
    LLM_TIMEOUT_SECONDS,
    LLM_TOP_K,
    LLM_TOP_P,
    OLLAMA_BASE_URL,
    OPENAI_API_KEY,
    OPENAI_LLM_MODEL,
)
from core.errors import GenerationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodingOptions:
    """Bounded decoding parameters sent with every generation request."""
    temperature: float = LLM_TEMPERATURE
    max_tokens: int = LLM_MAX_TOKENS
    repeat_penalty: float = LLM_REPEAT_PENALTY
    top_k: int = LLM_TOP_K
    top_p: float = LLM_TOP_P
    mirostat: int = LLM_MIROSTAT
    mirostat_tau: float = LLM_MIROSTAT_TAU
    mirostat_eta: float = LLM_MIROSTAT_ETA

    def to_ollama(self) -> dict:
        options = asdict(self)
        options["num_predict"] = options.pop("max_tokens")
        if not self.mirostat:
            for key in ("mirostat", "mirostat_tau", "mirostat_eta"):
                options.pop(key)
        return options


def iter_json_objects(buffer: str) -> Iterator[dict]:
    """
    Decode every JSON object in `buffer`, whether newline-delimited or
    concatenated back to back.

    Raises:
        GenerationError: On malformed JSON
    """
    decoder = json.JSONDecoder()
    pos = 0
    while True:
        while pos < len(buffer) and buffer[pos].isspace():
            pos += 1
        if pos >= len(buffer):
            return
        try:
            obj, pos = decoder.raw_decode(buffer, pos)
        except json.JSONDecodeError as e:
            raise GenerationError(f"Malformed response from generation service: {e}", body=buffer) from e
        if not isinstance(obj, dict):
            raise GenerationError("Unexpected response from generation service", body=buffer)
        yield obj


class GenerationClient:
    """Interface for generation providers."""

    model: str = ""

    def generate(self, prompt: str) -> AsyncIterator[str]:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources."""


class OllamaGenerationClient(GenerationClient):
    """
    Generation through an Ollama-compatible /api/generate endpoint.

    Request:  {"model", "prompt", "stream", "options"}
    Response: {"response": ...} or, when streaming, a sequence of
              {"response": fragment, "done": false} objects ending with done=true
    """

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        model: str = LLM_MODEL,
        options: Optional[DecodingOptions] = None,
        stream: bool = LLM_STREAM,
        timeout: float = LLM_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = f"{base_url.rstrip('/')}/api/generate"
        self.model = model
        self.options = options or DecodingOptions()
        self.stream = stream
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": self.stream,
            "options": self.options.to_ollama(),
        }

    async def generate(self, prompt: str) -> AsyncIterator[str]:
        try:
            async with self._client.stream("POST", self.url, json=self._payload(prompt)) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise GenerationError("Generation error", status_code=response.status_code, body=body)

                if not self.stream:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    objects = list(iter_json_objects(body))
                    if len(objects) != 1 or not isinstance(objects[0].get("response"), str):
                        raise GenerationError("Invalid response format from generation service", body=body)
                    yield objects[0]["response"]
                    return

                async for line in response.aiter_lines():
                    for obj in iter_json_objects(line):
                        if "error" in obj:
                            raise GenerationError(f"Generation error: {obj['error']}", body=line)
                        fragment = obj.get("response")
                        if fragment:
                            yield fragment
                        if obj.get("done"):
                            return
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as e:
            raise GenerationError(f"Generation request failed: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()


class OpenAIGenerationClient(GenerationClient):
    """Generation through the OpenAI chat completions API (always streamed)."""

    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        model: str = OPENAI_LLM_MODEL,
        options: Optional[DecodingOptions] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        if client is None and not api_key:
            raise ValueError("OPENAI_API_KEY not set. Add it to your .env file.")
        self.model = model
        self.options = options or DecodingOptions()
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def generate(self, prompt: str) -> AsyncIterator[str]:
        # OpenAI has no repeat penalty; frequency_penalty is the closest knob
        frequency_penalty = min(2.0, max(0.0, self.options.repeat_penalty - 1.0))
        try:
            stream = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.options.temperature,
                max_tokens=self.options.max_tokens,
                top_p=self.options.top_p,
                frequency_penalty=frequency_penalty,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                fragment = chunk.choices[0].delta.content
                if fragment:
                    yield fragment
        except OpenAIError as e:
            raise GenerationError(
                f"Generation request failed: {e}", status_code=getattr(e, "status_code", None)
            ) from e

    async def aclose(self) -> None:
        await self._client.close()


def get_generation_client(provider: str = GENERATION_PROVIDER) -> GenerationClient:
    """
    Build the configured generation client.

    Raises:
        ValueError: If the provider name is unknown
    """
    provider = provider.lower()
    if provider == "ollama":
        return OllamaGenerationClient()
    if provider == "openai":
        return OpenAIGenerationClient()
    raise ValueError(f"Unknown generation provider: {provider}")
