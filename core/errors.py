"""Error kinds raised by the RAG pipeline stages."""

from typing import Any, Dict, Optional


class RAGError(Exception):
    """Base error carrying the pipeline stage that failed."""

    stage = "pipeline"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if stage:
            self.stage = stage
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"[{self.stage}] {self.message} | {self.details}"
        return f"[{self.stage}] {self.message}"


class LoadError(RAGError):
    """Source document is missing, unreadable or unparsable."""

    stage = "load"


class SplitError(RAGError):
    """Invalid splitter configuration."""

    stage = "split"


class EmbeddingError(RAGError):
    """Embedding call failed or produced unusable vectors."""

    stage = "embed"


class StoreConnectionError(RAGError, ConnectionError):
    """Persistent vector store is unreachable."""

    stage = "index"


class GenerationError(RAGError):
    """Text generation call failed."""

    stage = "generate"


class StageTimeoutError(RAGError, TimeoutError):
    """An external call exceeded its deadline."""

    stage = "timeout"
