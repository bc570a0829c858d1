"""
KB Exceptions
=============

Error hierarchy for the knowledge base. Configuration errors are fatal and
never retried; retrieval errors are absorbed by the citation attacher.
"""

from typing import Optional


class KBError(Exception):
    """Base exception for knowledge base errors."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class KBConfigurationError(KBError, ValueError):
    """Missing or rejected credentials / connection settings."""
    pass


class EmbeddingError(KBError):
    """Embedding provider failed after retries."""
    pass


class VectorStoreError(KBError):
    """Vector store query or write failed."""
    pass


class RetrievalError(KBError):
    """Search could not be completed."""
    pass


class RetrievalTimeoutError(RetrievalError):
    """Search exceeded the caller's timeout."""

    def __init__(self, timeout: Optional[float] = None, message: Optional[str] = None):
        self.timeout = timeout
        super().__init__(message or f"Retrieval timed out after {timeout}s", error_code=504)
