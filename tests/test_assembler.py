"""
Tests for rag.assembler and rag.fallbacks
"""
import httpx
import pytest

from conftest import FakeGenerationClient
from core.errors import GenerationError
from rag.assembler import AnswerAssembler, fallback_message
from rag.fallbacks import KEYWORD_RESPONSES, TIMEOUT_MESSAGE, keyword_fallback
from rag.persona import PersonaConfig
from rag.prompts import ConversationTurn, ResponseFormat


@pytest.fixture
def persona():
    return PersonaConfig(name="Ava", style="bank agent")


class TestKeywordFallback:

    def test_password(self):
        result = keyword_fallback("I forgot my PASSWORD")
        assert result.topic == "password"
        assert result.matched_keyword == "password"

    def test_first_topic_wins(self):
        assert keyword_fallback("card payment").topic == "transfer"

    def test_whole_words_only(self):
        assert keyword_fallback("what about spinach") is None

    def test_no_match(self):
        assert keyword_fallback("what's the weather") is None


class TestAnswerAssembler:

    async def test_generates_and_segments(self, persona):
        client = FakeGenerationClient(fragments=["Hello!\n", "Step one\nStep two\n", "Step three\nStep four\nStep five"])
        assembler = AnswerAssembler(client, max_lines=4)

        messages = await assembler.assemble(persona, "How do I start?", context="System answer: start")

        assert messages == ["Step one\nStep two\nStep three\nStep four", "Step five"]

    async def test_prompt_contents(self, persona):
        client = FakeGenerationClient()
        assembler = AnswerAssembler(client, response_format=ResponseFormat.TERSE_ARROW)
        history = [ConversationTurn("user", "hi"), ConversationTurn("assistant", "hello")]

        await assembler.assemble(persona, "Where is my card?", history=history, context="SOURCE 1 (a.md):\nCards")

        prompt = client.prompts[0]
        assert prompt.startswith("[INST] You are Ava, bank agent.")
        assert prompt.rstrip().endswith("[/INST]")
        assert "SOURCE 1 (a.md):\nCards" in prompt
        assert "USER: hi\nASSISTANT: hello" in prompt
        assert "User Question: Where is my card?" in prompt
        assert "→" in prompt

    async def test_timeout_uses_keyword_answer(self, persona):
        assembler = AnswerAssembler(FakeGenerationClient(delay=5), timeout=0.05)

        messages = await assembler.assemble(persona, "I forgot my password")

        assert messages == [KEYWORD_RESPONSES["password"][1]]

    async def test_timeout_without_keyword(self, persona):
        assembler = AnswerAssembler(FakeGenerationClient(delay=5), timeout=0.05)

        messages = await assembler.assemble(persona, "Tell me a joke")

        assert messages == [fallback_message(TIMEOUT_MESSAGE)]

    async def test_http_timeout_uses_keyword_answer(self, persona):
        error = httpx.ReadTimeout("timed out")
        assembler = AnswerAssembler(FakeGenerationClient(error=error))

        messages = await assembler.assemble(persona, "How do I transfer money?")

        assert messages == [KEYWORD_RESPONSES["transfer"][1]]

    async def test_generation_error_single_message(self, persona):
        error = GenerationError("Generation error", status_code=500, body="boom")
        assembler = AnswerAssembler(FakeGenerationClient(error=error))

        messages = await assembler.assemble(persona, "How do I transfer money?")

        assert messages == ["Let's try a different approach... (Generation error (status 500): boom)"]

    async def test_unexpected_error_single_message(self, persona):
        assembler = AnswerAssembler(FakeGenerationClient(error=RuntimeError("kaput")))

        assert await assembler.assemble(persona, "anything") == [fallback_message("kaput")]

    async def test_empty_output_gets_fallback_message(self, persona):
        assembler = AnswerAssembler(FakeGenerationClient(fragments=["Hi there!"]))

        messages = await assembler.assemble(persona, "anything")

        assert len(messages) == 1
        assert messages[0].startswith("Sorry")

    def test_assemble_canned(self):
        assembler = AnswerAssembler(FakeGenerationClient(), max_lines=2)
        assert assembler.assemble_canned("**One**\nTwo\nThree") == ["One\nTwo", "Three"]
