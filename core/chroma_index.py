"""Persistent vector index backed by a Chroma server."""

import logging
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import chromadb
import httpx
import numpy as np

from core.chunk import Chunk
from core.errors import RAGError, StoreConnectionError
from core.index import EmbeddedChunk, VectorIndex
from core.timeouts import call_with_timeout

LOGGER = logging.getLogger(__name__)

# Chroma rejects very large requests; stay well below its limit.
UPSERT_BATCH_SIZE = 500


class ChromaVectorIndex(VectorIndex):
    """
    Vector index stored in a Chroma collection using cosine distance.

    Data is durable across runs. Every call to the server goes through
    `call_with_timeout`; connection failures surface as StoreConnectionError.
    Chroma handles concurrent readers and writers on its side.
    """

    def __init__(
        self,
        embedder,
        collection_name: str = "langchain",
        url: str = "http://localhost:8000",
        timeout: Optional[float] = None,
        client=None,
    ):
        super().__init__(embedder)
        self.collection_name = collection_name
        self.url = url
        self.timeout = timeout
        self.client = client if client is not None else self._connect(url)
        self.collection = self._call(
            self.client.get_or_create_collection,
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        LOGGER.info("Using Chroma collection '%s' (%d items)", collection_name, len(self))

    def _connect(self, url: str):
        parsed = urlparse(url)
        host = parsed.hostname or "localhost"
        port = parsed.port or (443 if parsed.scheme == "https" else 8000)
        try:
            client = call_with_timeout(
                chromadb.HttpClient,
                host=host,
                port=port,
                ssl=parsed.scheme == "https",
                timeout=self.timeout,
                stage="index",
            )
            call_with_timeout(client.heartbeat, timeout=self.timeout, stage="index")
        except RAGError:
            raise
        except Exception as exc:
            raise StoreConnectionError(
                f"could not reach Chroma at {url}: {exc}", details={"url": url}
            ) from exc
        return client

    def _call(self, func, *args, **kwargs):
        try:
            return call_with_timeout(func, *args, timeout=self.timeout, stage="index", **kwargs)
        except RAGError:
            raise
        except (ConnectionError, OSError, httpx.TransportError) as exc:
            raise StoreConnectionError(
                f"Chroma request failed: {exc}",
                details={"url": self.url, "collection": self.collection_name},
            ) from exc

    def __len__(self) -> int:
        return self._call(self.collection.count)

    def _known_ids(self, ids: Sequence[str]) -> set:
        found = self._call(self.collection.get, ids=list(ids), include=["metadatas"])
        return set(found["ids"])

    def _store(self, entries: List[EmbeddedChunk]) -> None:
        # each batch is its own request; a failure keeps the batches before it
        for i in range(0, len(entries), UPSERT_BATCH_SIZE):
            batch = entries[i : i + UPSERT_BATCH_SIZE]
            self._call(
                self.collection.upsert,
                ids=[e.chunk.id for e in batch],
                embeddings=[e.vector.tolist() for e in batch],
                documents=[e.chunk.text for e in batch],
                metadatas=[{**e.chunk.metadata, "source_ref": e.chunk.source_ref} for e in batch],
            )

    def _search(self, vector: np.ndarray, k: int) -> List[Tuple[Chunk, float]]:
        results = self._call(
            self.collection.query,
            query_embeddings=[vector.tolist()],
            n_results=min(k, len(self)),
            include=["documents", "metadatas", "distances"],
        )
        if not results["ids"] or not results["ids"][0]:
            return []

        hits = []
        for chunk_id, text, metadata, distance in zip(
            results["ids"][0],
            results["documents"][0],
            results["metadatas"][0],
            results["distances"][0],
        ):
            metadata = dict(metadata or {})
            source_ref = str(metadata.pop("source_ref", ""))
            chunk = Chunk(
                id=chunk_id,
                text=text,
                source_ref=source_ref,
                metadata={key: str(value) for key, value in metadata.items()},
            )
            # Chroma returns cosine distance; similarity = 1 - distance
            hits.append((chunk, 1.0 - float(distance)))
        hits.sort(key=lambda hit: hit[1], reverse=True)
        return hits
