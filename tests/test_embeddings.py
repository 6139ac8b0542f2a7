"""
Tests for core.embeddings (HTTP mocked with httpx.MockTransport)
"""
import json

import httpx
import pytest

from core.embeddings import OllamaEmbeddingGateway, get_embedding_gateway
from core.errors import EmbeddingError


def make_gateway(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaEmbeddingGateway(base_url="http://embed.test/", model="test-embed", client=client)


class TestOllamaEmbeddingGateway:

    async def test_success(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})

        gateway = make_gateway(handler)
        assert await gateway.embed("hello") == [0.1, 0.2, 0.3]
        assert seen == {"path": "/api/embeddings", "body": {"model": "test-embed", "prompt": "hello"}}

    async def test_non_success_status(self):
        gateway = make_gateway(lambda request: httpx.Response(503, text="overloaded"))

        with pytest.raises(EmbeddingError) as exc_info:
            await gateway.embed("hello")

        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "overloaded"

    async def test_missing_embedding(self):
        gateway = make_gateway(lambda request: httpx.Response(200, json={"error": "no model"}))
        with pytest.raises(EmbeddingError):
            await gateway.embed("hello")

    async def test_not_json(self):
        gateway = make_gateway(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(EmbeddingError):
            await gateway.embed("hello")

    @pytest.mark.parametrize("embedding", [["x"], [None], [0.1, {"v": 1}], "0.1,0.2"])
    async def test_non_numeric_embedding(self, embedding):
        """Elements that are not numbers are a malformed body, not a crash"""
        gateway = make_gateway(lambda request: httpx.Response(200, json={"embedding": embedding}))

        with pytest.raises(EmbeddingError) as exc_info:
            await gateway.embed("hello")

        assert exc_info.value.status_code == 200

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = make_gateway(handler)
        with pytest.raises(EmbeddingError):
            await gateway.embed("hello")


def test_unknown_provider():
    with pytest.raises(ValueError):
        get_embedding_gateway("nope")
