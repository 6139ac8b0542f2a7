"""
Tests for rag.chat_engine (end-to-end with fake services)
"""
import json
from unittest.mock import patch

import httpx
import pytest

from conftest import FakeEmbeddingGateway, FakeGenerationClient, axis
from core.embeddings import OllamaEmbeddingGateway
from core.intents import BANKING_INTENTS
from core.knowledge_base import KnowledgeBase
from core.vectorstore import Chunk, VectorStore
from rag.assembler import AnswerAssembler
from rag.chat_engine import INITIALIZING_MESSAGE, QUESTION_REQUIRED_MESSAGE, ChatEngine
from rag.generation import OllamaGenerationClient
from rag.persona import PersonaConfig
from rag.prompts import NO_MATCH_CONTEXT

PASSWORD_QUESTION = "How do I change my password?"
GUIDE_CHUNK = Chunk(content="Statements are under Accounts > Statements.", source="guide.md")


def banking_gateway(**extra):
    """Password examples and question share an axis; the guide chunk has its own."""
    vectors = {example: axis(1, 0, 0) for example in BANKING_INTENTS["password_change"][0]}
    vectors[PASSWORD_QUESTION] = axis(0.9, 0.3, 0)
    vectors[GUIDE_CHUNK.content] = axis(0, 0, 1)
    vectors.update(extra)
    return FakeEmbeddingGateway(vectors)


async def make_engine(gateway, client=None, **kwargs):
    kb = KnowledgeBase(gateway, vector_store=VectorStore(keywords=[]))
    await kb.build(None, chunks=[GUIDE_CHUNK])
    assembler = AnswerAssembler(client or FakeGenerationClient())
    return ChatEngine(kb, assembler, PersonaConfig(name="Ava"), **kwargs)


class TestChatEngine:

    async def test_initializing(self):
        kb = KnowledgeBase(FakeEmbeddingGateway())
        engine = ChatEngine(kb, AnswerAssembler(FakeGenerationClient()))

        answer = await engine.answer("anything")

        assert answer.messages == [INITIALIZING_MESSAGE]
        assert answer.route == "initializing"

    async def test_question_required(self):
        engine = await make_engine(banking_gateway())
        assert await engine.ask("   ") == [QUESTION_REQUIRED_MESSAGE]

    async def test_intent_bypasses_vector_search(self):
        client = FakeGenerationClient(fragments=["Go to Settings > Security."])
        engine = await make_engine(banking_gateway(), client, intent_threshold=0.75)

        with patch.object(engine.knowledge_base.vector_store, "search") as search:
            answer = await engine.answer(PASSWORD_QUESTION)

        search.assert_not_called()
        assert answer.route == "intent"
        assert answer.intent == "password_change"
        assert answer.messages == ["Go to Settings > Security."]
        assert f"System answer: {BANKING_INTENTS['password_change'][1]}" in client.prompts[0]

    async def test_intent_without_generation(self):
        client = FakeGenerationClient()
        engine = await make_engine(banking_gateway(), client, intent_threshold=0.75, intent_use_generation=False)

        answer = await engine.answer(PASSWORD_QUESTION)

        assert answer.route == "intent"
        assert client.prompts == []
        # one message; the long canned answer is wrapped onto two lines
        assert len(answer.messages) == 1
        assert answer.messages[0].replace("\n", " ") == BANKING_INTENTS["password_change"][1]

    async def test_retrieval_route(self):
        question = "Where are my statements?"
        client = FakeGenerationClient(fragments=["Open Accounts > Statements."])
        engine = await make_engine(banking_gateway(**{question: axis(0, 0.2, 1)}), client)

        answer = await engine.answer(question)

        assert answer.route == "retrieval"
        assert answer.sources == ("guide.md",)
        assert "SOURCE 1 (guide.md):\nStatements are under Accounts > Statements." in client.prompts[0]

    async def test_fallback_route(self):
        client = FakeGenerationClient(fragments=["I am not sure."])
        engine = await make_engine(banking_gateway(**{"Weather?": axis(0, 1, 0)}), client)

        answer = await engine.answer("Weather?")

        assert answer.route == "fallback"
        assert answer.messages == ["I am not sure."]
        assert NO_MATCH_CONTEXT in client.prompts[0]

    async def test_embedding_failure_answers_without_context(self):
        gateway = banking_gateway()
        client = FakeGenerationClient(fragments=["General answer."])
        engine = await make_engine(gateway, client)
        gateway.fail_on.add("Broken question")

        answer = await engine.answer("Broken question")

        assert answer.route == "fallback"
        assert answer.messages == ["General answer."]

    async def test_generation_http_error_single_message(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")))
        client = OllamaGenerationClient(base_url="http://llm.test", client=http)
        engine = await make_engine(banking_gateway(**{"Weather?": axis(0, 1, 0)}), client)

        messages = await engine.ask("Weather?")

        assert len(messages) == 1
        assert messages[0].startswith("Let's try a different approach...")

    async def test_history_reaches_prompt(self):
        client = FakeGenerationClient()
        engine = await make_engine(banking_gateway(**{"And then?": axis(0, 1, 0)}), client)

        await engine.answer("And then?", [{"role": "user", "message": "My card is gone"}])

        assert "USER: My card is gone" in client.prompts[0]

    async def test_stream_yields_messages_in_order(self):
        client = FakeGenerationClient(fragments=["\n".join(f"line {i}" for i in range(6))])
        engine = await make_engine(banking_gateway(**{"List?": axis(0, 1, 0)}), client)

        messages = [m async for m in engine.stream("List?")]

        assert messages == ["line 0\nline 1\nline 2\nline 3", "line 4\nline 5"]

    async def test_malformed_query_embedding_answers_without_context(self):
        def handler(request):
            if json.loads(request.content)["prompt"] == "hello":
                return httpx.Response(200, json={"embedding": [None]})
            return httpx.Response(200, json={"embedding": [0.0, 1.0]})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        gateway = OllamaEmbeddingGateway(base_url="http://embed.test", client=http)
        client = FakeGenerationClient(fragments=["General answer."])
        engine = await make_engine(gateway, client)

        answer = await engine.answer("hello")

        assert answer.route == "fallback"
        assert answer.messages == ["General answer."]
        assert NO_MATCH_CONTEXT in client.prompts[0]
