"""Exception hierarchy for the RAG core.

All errors raised by this package inherit from RagError, which carries an
optional provider_name identifying the external service involved
(e.g. "openai", "postgres"):

    RagError
    +-- ConfigurationError   (missing credentials, unreachable datastore)
    +-- EmbeddingError       (embedding provider call failed or returned bad vectors)
    +-- StoreError           (datastore read/write failed)
    +-- IngestionError       (a single file could not be ingested)

Duplicate content and unsupported files are ingestion outcomes, not errors.
"""
from typing import Optional


class RagError(Exception):
    """Base exception for all RAG core errors."""

    def __init__(self, message: str = "RAG operation failed", provider_name: Optional[str] = None) -> None:
        self.message = message
        self.provider_name = provider_name
        super().__init__(message)

    def __str__(self) -> str:
        if self.provider_name:
            return f"[{self.provider_name}] {self.message}"
        return self.message


class ConfigurationError(RagError):
    """Raised at startup when required configuration is missing or unusable."""

    def __init__(self, message: str = "Invalid configuration", provider_name: Optional[str] = None) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(RagError):
    """Raised when the embedding provider fails or returns malformed vectors."""

    def __init__(self, message: str = "Embedding failed", provider_name: Optional[str] = "openai") -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreError(RagError):
    """Raised when the backing datastore rejects or fails an operation."""

    def __init__(self, message: str = "Datastore operation failed", provider_name: Optional[str] = None) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(RagError):
    """Raised when one file cannot be ingested; the cause is chained."""

    def __init__(self, message: str = "Ingestion failed", path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message=message)
