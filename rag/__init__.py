"""
rag/ - Answer pipeline for the HelpDesk RAG engine
==================================================

This package contains the request-time components:
- ingestion/: Knowledge directory loading and segmentation
- prompts.py: Prompt template and response-format rules
- generation.py: Clients for the text-generation service
- postprocess.py: Output cleanup and message segmentation
- fallbacks.py: Canned answers used when generation times out
- persona.py: Assistant persona file
- assembler.py: Prompt -> generation -> cleanup -> messages
- chat_engine.py: Intent / retrieval / fallback routing
"""
