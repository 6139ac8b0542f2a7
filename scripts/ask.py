#!/usr/bin/env python3
"""
scripts/ask.py
==============

CLI for asking the HelpDesk RAG engine a question without the HTTP server.

Builds the knowledge base (embedding every chunk), then prints the answer
messages, or the loaded chunks when --list-chunks is given.

Usage:
    # Ask a question
    python scripts/ask.py "How do I change my password?"

    # Use another knowledge directory
    python scripts/ask.py --knowledge-dir data/knowledge "How do I block my card?"

    # Inspect the chunks (no embedding service needed)
    python scripts/ask.py --list-chunks

Requirements:
    An Ollama-compatible service on OLLAMA_BASE_URL, or OpenAI providers
    configured in .env
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(PROJECT_ROOT / ".env")


async def run_question(knowledge_dir: Path, question: str, no_seed: bool) -> int:
    from config import PERSONA_FILENAME
    from core.embeddings import get_embedding_gateway
    from core.knowledge_base import KnowledgeBase
    from rag.assembler import AnswerAssembler
    from rag.chat_engine import ChatEngine
    from rag.generation import get_generation_client
    from rag.persona import load_persona

    knowledge_base = KnowledgeBase(get_embedding_gateway())
    assembler = AnswerAssembler(get_generation_client())
    try:
        await knowledge_base.build(knowledge_dir, seed_intents=not no_seed)
        engine = ChatEngine(knowledge_base, assembler, load_persona(knowledge_dir / PERSONA_FILENAME))
        answer = await engine.answer(question)
    finally:
        await knowledge_base.gateway.aclose()
        await assembler.client.aclose()

    print(f"\n[route: {answer.route}"
          + (f", intent: {answer.intent}" if answer.intent else "")
          + (f", sources: {', '.join(answer.sources)}" if answer.sources else "")
          + "]\n")
    for i, message in enumerate(answer.messages, 1):
        print(f"--- message {i} ---")
        print(message)
    return 0


def list_chunks(knowledge_dir: Path) -> int:
    from rag.ingestion import KnowledgeLoader

    loader = KnowledgeLoader()
    chunks = loader.load(knowledge_dir)
    for chunk in chunks:
        print(chunk)
    print(f"\n{len(chunks)} chunk(s), {len(loader.warnings)} file(s) skipped")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Ask the HelpDesk RAG engine a question",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("question", nargs="?", help="Question to answer")
    parser.add_argument(
        "--knowledge-dir",
        type=str,
        default=None,
        help="Knowledge directory (default: KNOWLEDGE_DIR from config)"
    )
    parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Do not register the built-in banking intents"
    )
    parser.add_argument(
        "--list-chunks",
        action="store_true",
        help="Print the loaded chunks and exit"
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    from config import KNOWLEDGE_DIR, LOG_LEVEL

    logging.basicConfig(level=logging.DEBUG if args.verbose else LOG_LEVEL,
                        format="%(levelname)s %(name)s: %(message)s")

    knowledge_dir = Path(args.knowledge_dir) if args.knowledge_dir else KNOWLEDGE_DIR
    if not knowledge_dir.is_absolute():
        knowledge_dir = PROJECT_ROOT / knowledge_dir

    if not knowledge_dir.is_dir():
        print(f"Error: knowledge directory not found: {knowledge_dir}")
        sys.exit(1)

    if args.list_chunks:
        sys.exit(list_chunks(knowledge_dir))

    if not args.question:
        parser.error("a question is required unless --list-chunks is given")

    sys.exit(asyncio.run(run_question(knowledge_dir, args.question, args.no_seed)))


if __name__ == "__main__":
    main()
