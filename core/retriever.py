"""Retriever that uses the vector index for similarity search."""

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple

from core.chunk import Chunk
from core.index import VectorIndex

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Query:
    text: str
    k: int = 2

    def __post_init__(self):
        if self.k <= 0:
            raise ValueError("k must be a positive integer")


@dataclass(frozen=True)
class RetrievalResult:
    """Chunks ordered from most to least similar, with their scores kept for diagnostics."""

    hits: List[Tuple[Chunk, float]] = field(default_factory=list)

    @property
    def chunks(self) -> List[Chunk]:
        return [chunk for chunk, _ in self.hits]

    @property
    def texts(self) -> List[str]:
        return [chunk.text for chunk, _ in self.hits]

    @property
    def scores(self) -> List[float]:
        return [score for _, score in self.hits]

    def __iter__(self) -> Iterator[Chunk]:
        return iter(self.chunks)

    def __len__(self) -> int:
        return len(self.hits)

    def __getitem__(self, position: int) -> Chunk:
        return self.hits[position][0]


class Retriever:
    """Retrieves relevant chunks from a vector index."""

    def __init__(self, index: VectorIndex, embedder=None):
        self.index = index
        # Queries must be embedded with the same model as the indexed chunks.
        self.embedder = embedder if embedder is not None else index.embedder

    def retrieve(self, query: Query) -> RetrievalResult:
        """
        Retrieve the top `query.k` chunks for `query.text`.

        Returns an empty result when the index holds nothing; embedding
        failures propagate as EmbeddingError.
        """
        if len(self.index) == 0:
            LOGGER.warning("Index is empty")
            return RetrievalResult()

        vector = self.embedder.embed(query.text)
        hits = self.index.query(vector, query.k)

        for i, (chunk, score) in enumerate(hits):
            LOGGER.debug(
                "[%d] score=%.4f chunk=%s",
                i + 1,
                score,
                chunk.id,
            )

        return RetrievalResult(hits=list(hits))
