"""
backend/ - HTTP API for the HelpDesk RAG engine.
"""
