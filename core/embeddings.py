"""
core/embeddings.py - Embedding Gateway
======================================

Turns text into a fixed-length vector by calling an external embedding
service. Two providers are supported:
- OllamaEmbeddingGateway: POST {base_url}/api/embeddings (default)
- OpenAIEmbeddingGateway: OpenAI embeddings API

Any failure (transport error, non-2xx status, malformed body) raises
EmbeddingError. Nothing is retried here; callers decide.
"""

import logging
from typing import Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from config import (
    EMBEDDING_MODEL,
    EMBEDDING_PROVIDER,
    EMBEDDING_TIMEOUT_SECONDS,
    OLLAMA_BASE_URL,
    OPENAI_API_KEY,
    OPENAI_EMBEDDING_MODEL,
)
from core.errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingGateway:
    """Interface for embedding providers."""

    model: str = ""

    async def embed(self, text: str) -> list[float]:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources. Safe to call more than once."""


class OllamaEmbeddingGateway(EmbeddingGateway):
    """
    Embeddings from an Ollama-compatible HTTP service.

    Request:  {"model": ..., "prompt": text}
    Response: {"embedding": [float, ...]}
    """

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        model: str = EMBEDDING_MODEL,
        timeout: float = EMBEDDING_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = f"{base_url.rstrip('/')}/api/embeddings"
        self.model = model
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.post(self.url, json={"model": self.model, "prompt": text})
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if not response.is_success:
            raise EmbeddingError("Embedding error", status_code=response.status_code, body=response.text)

        try:
            embedding = response.json()["embedding"]
            if not isinstance(embedding, list):
                raise TypeError(f"expected a list, got {type(embedding).__name__}")
            return [float(x) for x in embedding]
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingError(
                "Malformed embedding response", status_code=response.status_code, body=response.text
            ) from e

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()


class OpenAIEmbeddingGateway(EmbeddingGateway):
    """Embeddings from the OpenAI API."""

    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        model: str = OPENAI_EMBEDDING_MODEL,
        client: Optional[AsyncOpenAI] = None,
    ):
        if client is None and not api_key:
            raise ValueError("OPENAI_API_KEY not set. Add it to your .env file.")
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(model=self.model, input=text)
        except OpenAIError as e:
            raise EmbeddingError(
                f"Embedding request failed: {e}", status_code=getattr(e, "status_code", None)
            ) from e

        if not response.data:
            raise EmbeddingError("Malformed embedding response: no data")
        return list(response.data[0].embedding)

    async def aclose(self) -> None:
        await self._client.close()


def get_embedding_gateway(provider: str = EMBEDDING_PROVIDER) -> EmbeddingGateway:
    """
    Build the configured embedding gateway.

    Raises:
        ValueError: If the provider name is unknown
    """
    provider = provider.lower()
    if provider == "ollama":
        return OllamaEmbeddingGateway()
    if provider == "openai":
        return OpenAIEmbeddingGateway()
    raise ValueError(f"Unknown embedding provider: {provider}")
