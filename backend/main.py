"""
backend/main.py
===============

FastAPI backend for the HelpDesk RAG engine.

Provides REST API endpoints for the chat interface:
- POST /ask - Ask a question; the answer streams back as newline-delimited
  JSON objects {"message": ...}, or as one {"response": ...} object when
  "stream" is false
- GET /health - Readiness and index sizes

Startup reads the knowledge directory right away (a missing directory aborts
the server), then embeds it in the background (a failed build stops the
server). Questions asked before the index is ready get a
"System initializing..." message.

Run with:
    uvicorn backend.main:app --port 3000
"""

import asyncio
import json
import logging
import os
import signal
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, Callable, Literal, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from config import KNOWLEDGE_DIR, LOG_LEVEL, PERSONA_FILE
from core.embeddings import get_embedding_gateway
from core.knowledge_base import KnowledgeBase
from rag.assembler import AnswerAssembler
from rag.chat_engine import ChatEngine
from rag.generation import get_generation_client
from rag.ingestion import load_knowledge_base
from rag.persona import load_persona
from rag.prompts import ConversationTurn

logger = logging.getLogger(__name__)


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class ConversationTurnIn(BaseModel):
    role: Literal["user", "assistant"]
    message: str


class AskRequest(BaseModel):
    """Request model for the ask endpoint."""
    question: str = Field("", max_length=2000, description="User's question")
    conversation: Optional[list[ConversationTurnIn]] = Field(
        default=None,
        description="Prior turns as a list of {role, message}",
    )
    stream: bool = Field(True, description="Stream messages as NDJSON")


class AskResponse(BaseModel):
    response: str


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    ready: bool
    total_chunks: int = 0
    intents: int = 0


# =============================================================================
# STARTUP
# =============================================================================

def abort_startup() -> None:
    """Stop the server. uvicorn treats SIGTERM as a graceful shutdown."""
    os.kill(os.getpid(), signal.SIGTERM)


async def _build_knowledge_base(
    knowledge_base: KnowledgeBase,
    chunks: list,
    on_failure: Optional[Callable[[], None]] = None,
) -> None:
    """
    Embed the loaded chunks in the background.

    A failure is fatal: it is logged and the server is stopped.
    """
    try:
        await knowledge_base.build(KNOWLEDGE_DIR, chunks=chunks)
    except Exception:
        logger.critical("Knowledge base initialization failed, shutting down", exc_info=True)
        (on_failure or abort_startup)()


def create_engine_and_task() -> tuple[ChatEngine, asyncio.Task]:
    """
    Build the chat engine and start indexing in the background.

    Raises:
        FileNotFoundError / NotADirectoryError: If KNOWLEDGE_DIR is unusable
    """
    persona = load_persona(PERSONA_FILE)
    chunks = load_knowledge_base(KNOWLEDGE_DIR)

    knowledge_base = KnowledgeBase(get_embedding_gateway())
    engine = ChatEngine(knowledge_base, AnswerAssembler(get_generation_client()), persona)
    task = asyncio.create_task(_build_knowledge_base(knowledge_base, chunks))
    return engine, task


def create_app(chat_engine: Optional[ChatEngine] = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        chat_engine: Pre-built engine (tests). When omitted, the engine is
                     built from configuration at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if chat_engine is not None:
            app.state.engine = chat_engine
            yield
            return

        logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        engine, task = create_engine_and_task()
        app.state.engine = engine
        try:
            yield
        finally:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            await engine.knowledge_base.gateway.aclose()
            await engine.assembler.client.aclose()

    app = FastAPI(
        title="HelpDesk RAG API",
        description="Intent matching and retrieval-augmented answers",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request):
        engine: ChatEngine = request.app.state.engine
        stats = engine.knowledge_base.stats()
        return HealthResponse(
            status="healthy" if stats["ready"] else "initializing",
            ready=stats["ready"],
            total_chunks=stats["total_chunks"],
            intents=stats["intents"],
        )

    @app.post("/ask", tags=["Chat"], response_model=None)
    async def ask(body: AskRequest, request: Request):
        """
        Answer a question.

        The route (intent, knowledge base, open generation) is picked by the
        chat engine; errors come back as regular messages.
        """
        engine: ChatEngine = request.app.state.engine
        conversation = [ConversationTurn(role=t.role, message=t.message) for t in body.conversation or []]

        if not body.stream:
            answer = await engine.answer(body.question, conversation)
            return AskResponse(response=answer.text)

        async def ndjson() -> AsyncIterator[str]:
            async for message in engine.stream(body.question, conversation):
                yield json.dumps({"message": message}, ensure_ascii=False) + "\n"

        return StreamingResponse(ndjson(), media_type="application/x-ndjson")

    return app


app = create_app()


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3000)
