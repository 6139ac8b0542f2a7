"""
core/errors.py - Error taxonomy
================================

Gateway and client errors are raised close to the network call and caught
at the KnowledgeBase and assembler boundaries. IngestionWarning never
escapes the knowledge loader.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for failures of an external model service."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self):
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (status {self.status_code}): {self.body}".rstrip(": ")
        return base


class EmbeddingError(ServiceError):
    """The embedding provider was unreachable or returned an unusable response."""


class GenerationError(ServiceError):
    """The generation provider was unreachable, failed, or omitted the response text."""


class InvalidIntentError(ValueError):
    """An intent was registered without any example phrases."""


class IngestionWarning(Warning):
    """A single knowledge file could not be parsed. Non-fatal."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason
