"""
rag/ingestion - Knowledge base ingestion for the HelpDesk RAG engine.

Reads .txt, .md and .pdf files from the knowledge directory and segments
them into chunks (FAQ pairs or free-form passages).
"""

from .knowledge_loader import KnowledgeLoader, load_file, load_knowledge_base, split_text

__all__ = ["KnowledgeLoader", "load_file", "load_knowledge_base", "split_text"]
