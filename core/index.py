"""Vector index interface and the FAISS-backed in-process implementation."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import faiss
import numpy as np

from core.chunk import Chunk
from core.errors import EmbeddingError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddedChunk:
    chunk: Chunk
    vector: np.ndarray


def _as_query_matrix(vector: np.ndarray) -> np.ndarray:
    query = np.asarray(vector, dtype=np.float32).reshape(1, -1).copy()
    faiss.normalize_L2(query)
    return query


class VectorIndex(ABC):
    """
    Append-only store of embedded chunks supporting cosine similarity search.

    `add` embeds all new chunks in a single batch before storing anything, so a
    failing embedding call leaves the index untouched. Chunks whose id is
    already stored are skipped.
    """

    def __init__(self, embedder):
        self.embedder = embedder

    @abstractmethod
    def __len__(self) -> int:
        ...

    @abstractmethod
    def _known_ids(self, ids: Sequence[str]) -> set:
        """Return the subset of `ids` already stored."""

    @abstractmethod
    def _store(self, entries: List[EmbeddedChunk]) -> None:
        ...

    @abstractmethod
    def _search(self, vector: np.ndarray, k: int) -> List[Tuple[Chunk, float]]:
        ...

    @property
    def dimension(self) -> Optional[int]:
        return self.embedder.dimension

    def add(self, chunks: Sequence[Chunk]) -> List[EmbeddedChunk]:
        """
        Embed and store `chunks`; return the entries that were newly stored.

        Embedding is all-or-nothing: every new chunk is embedded in one batch
        before anything is written, so an EmbeddingError stores nothing. Writes
        are only atomic per backend request. A backend that stores in several
        requests (Chroma upserts in batches) keeps the batches written before a
        failing one, and re-running `add` completes them since known ids are
        skipped.
        """
        known = self._known_ids([c.id for c in chunks]) if chunks else set()
        pending: Dict[str, Chunk] = {}
        for chunk in chunks:
            if chunk.id not in known and chunk.id not in pending:
                pending[chunk.id] = chunk
        if not pending:
            LOGGER.debug("Nothing new to index (%d chunks already present)", len(chunks))
            return []

        new_chunks = list(pending.values())
        vectors = self.embedder.embed_batch([c.text for c in new_chunks])
        if len(vectors) != len(new_chunks):
            raise EmbeddingError(
                "embedder returned a different number of vectors than texts",
                details={"texts": len(new_chunks), "vectors": len(vectors)},
            )

        entries = [
            EmbeddedChunk(chunk=chunk, vector=np.asarray(vector, dtype=np.float32))
            for chunk, vector in zip(new_chunks, vectors)
        ]
        self._store(entries)
        LOGGER.info("Indexed %d chunks (%d skipped as duplicates)", len(entries), len(chunks) - len(entries))
        return entries

    def query(self, vector: np.ndarray, k: int) -> List[Tuple[Chunk, float]]:
        """Return at most `k` (chunk, cosine similarity) pairs, most similar first."""
        if k <= 0:
            raise ValueError("k must be a positive integer")
        if len(self) == 0:
            return []
        vector = np.asarray(vector, dtype=np.float32).ravel()
        if self.dimension is not None and vector.shape[0] != self.dimension:
            raise EmbeddingError(
                "query vector dimension does not match the index",
                details={"expected": self.dimension, "got": int(vector.shape[0])},
            )
        return self._search(vector, k)


class InMemoryVectorIndex(VectorIndex):
    """
    In-process index using FAISS inner product over L2-normalised vectors.

    Data lives only as long as the object. Not safe for concurrent writers;
    give each thread its own instance or guard `add` externally.
    """

    def __init__(self, embedder):
        super().__init__(embedder)
        self.entries: List[EmbeddedChunk] = []
        self._ids: set = set()
        self._faiss_index: Optional["faiss.Index"] = None

    def __len__(self) -> int:
        return len(self.entries)

    def _known_ids(self, ids: Sequence[str]) -> set:
        return self._ids.intersection(ids)

    def _store(self, entries: List[EmbeddedChunk]) -> None:
        matrix = np.vstack([e.vector for e in entries]).astype(np.float32)
        if self._faiss_index is None:
            self._faiss_index = faiss.IndexFlatIP(matrix.shape[1])
            LOGGER.info("Created FAISS index of dimension %d", matrix.shape[1])
        elif matrix.shape[1] != self._faiss_index.d:
            raise EmbeddingError(
                "vector dimension does not match the index",
                details={"expected": self._faiss_index.d, "got": int(matrix.shape[1])},
            )
        faiss.normalize_L2(matrix)
        self._faiss_index.add(matrix)
        self.entries.extend(entries)
        self._ids.update(e.chunk.id for e in entries)

    @property
    def dimension(self) -> Optional[int]:
        if self._faiss_index is not None:
            return self._faiss_index.d
        return super().dimension

    def _search(self, vector: np.ndarray, k: int) -> List[Tuple[Chunk, float]]:
        scores, indices = self._faiss_index.search(_as_query_matrix(vector), min(k, len(self.entries)))
        results = []
        for score, idx in zip(scores[0], indices[0]):
            if idx >= 0:  # FAISS returns -1 for missing results
                results.append((self.entries[idx].chunk, float(score)))
        return results
