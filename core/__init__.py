"""
core/ - Core retrieval components for the HelpDesk RAG engine
=============================================================

This package contains the main components:
- errors.py: Service and ingestion error types
- similarity.py: Cosine similarity and centroids
- embeddings.py: Embedding gateways (Ollama, OpenAI)
- vectorstore.py: In-memory vector store with keyword-boosted ranking
- intents.py: Centroid intent index and seeded banking intents
- knowledge_base.py: Startup pipeline and readiness flag
"""
