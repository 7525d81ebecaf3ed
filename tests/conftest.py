"""Shared fixtures: deterministic embedders and sample text."""

import hashlib
from typing import Dict, List

import numpy as np
import pytest

from core.chunk import Chunk
from core.errors import EmbeddingError


class HashingEmbedder:
    """Bag of hashed character trigrams; a pure function of the text."""

    def __init__(self, dimension: int = 64):
        self.dimension = dimension
        self.calls = 0

    def embed(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> np.ndarray:
        self.calls += 1
        rows = np.zeros((len(texts), self.dimension), dtype=np.float32)
        for row, text in enumerate(texts):
            lowered = text.lower()
            for i in range(max(len(lowered) - 2, 1)):
                gram = lowered[i : i + 3].encode("utf-8")
                bucket = int(hashlib.md5(gram).hexdigest(), 16) % self.dimension
                rows[row, bucket] += 1.0
        return rows


class LookupEmbedder:
    """Returns preset vectors for known texts."""

    def __init__(self, vectors: Dict[str, List[float]]):
        self.vectors = {text: np.asarray(v, dtype=np.float32) for text, v in vectors.items()}
        self.dimension = len(next(iter(vectors.values())))

    def embed(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> np.ndarray:
        return np.vstack([self.vectors[t] for t in texts])


class FailingEmbedder:
    dimension = 8

    def embed(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> np.ndarray:
        raise EmbeddingError("embedding service unavailable")


def make_chunks(texts: List[str], source: str = "doc") -> List[Chunk]:
    return [
        Chunk(id=f"{source}-{i}", text=text, source_ref=source, metadata={"chunk_idx": str(i)})
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def sample_texts():
    return [
        "LangChain is a framework for developing applications powered by language models.",
        "FAISS performs efficient similarity search over dense vectors.",
        "Chroma is an open-source embedding database with a simple HTTP API.",
        "PDF files can be parsed with PyMuPDF, pdfplumber or PyPDF2.",
        "Temperature controls the randomness of a language model's output.",
    ]


@pytest.fixture
def long_text():
    sentences = [
        f"Sentence number {i} talks about retrieval augmented generation and vector search. \n"
        for i in range(60)
    ]
    return "".join(sentences)
