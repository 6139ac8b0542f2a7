"""
Pytest configuration and shared fakes for the HelpDesk RAG test suite.

Configures:
- pytest-asyncio (asyncio_mode = "auto" in pyproject.toml)
- FakeEmbeddingGateway: deterministic vectors, no network
- FakeGenerationClient: canned fragments, errors or delays
"""
import asyncio
import re
import zlib

import pytest

from core.embeddings import EmbeddingGateway
from core.errors import EmbeddingError
from core.knowledge_base import KnowledgeBase
from core.vectorstore import VectorStore
from rag.generation import GenerationClient

# Dimensions [0, RESERVED_DIMS) are left for hand-picked vectors so they never
# overlap with hashed bag-of-words vectors.
RESERVED_DIMS = 8
DIM = 64


def axis(*weights):
    """Hand-picked vector living in the reserved dimensions."""
    vector = [0.0] * DIM
    for i, w in enumerate(weights):
        vector[i] = float(w)
    return vector


class FakeEmbeddingGateway(EmbeddingGateway):
    """Returns a fixed vector for known texts, a hashed bag-of-words otherwise."""

    model = "fake-embed"

    def __init__(self, vectors=None, fail_on=()):
        self.vectors = dict(vectors or {})
        self.fail_on = set(fail_on)
        self.calls = []
        self.closed = False

    async def embed(self, text):
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingError("Embedding error", status_code=500, body="model not loaded")
        if text in self.vectors:
            return list(self.vectors[text])

        vector = [0.0] * DIM
        for word in re.findall(r"\w+", text.lower()):
            vector[RESERVED_DIMS + zlib.crc32(word.encode()) % (DIM - RESERVED_DIMS)] += 1.0
        return vector

    async def aclose(self):
        self.closed = True


class FakeGenerationClient(GenerationClient):
    """Records prompts; yields `fragments`, or raises `error` after `delay` seconds."""

    model = "fake-llm"

    def __init__(self, fragments=("Here is the answer.",), error=None, delay=0.0):
        self.fragments = list(fragments)
        self.error = error
        self.delay = delay
        self.prompts = []
        self.closed = False

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        for fragment in self.fragments:
            yield fragment

    async def aclose(self):
        self.closed = True


@pytest.fixture
def gateway():
    return FakeEmbeddingGateway()


@pytest.fixture
def generation_client():
    return FakeGenerationClient()


@pytest.fixture
def knowledge_base(gateway):
    return KnowledgeBase(gateway, vector_store=VectorStore(keywords=[]))


@pytest.fixture
def knowledge_dir(tmp_path):
    """A small knowledge directory: FAQ, markdown guide and persona file."""
    (tmp_path / "faq.txt").write_text(
        "Q: What is X?\nA: X is Y.\n\nQ: How?\nA: Like this.\n", encoding="utf-8"
    )
    (tmp_path / "guide.md").write_text(
        "# Cards\n"
        "Freeze a lost card in the app under Cards > Security right away.\n\n"
        "Too short.\n",
        encoding="utf-8",
    )
    (tmp_path / "persona.txt").write_text("name: Ava\nstyle: bank agent\n", encoding="utf-8")
    return tmp_path
