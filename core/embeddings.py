"""Dense embedding helpers: sentence-transformers, OpenAI or hosted Hugging Face."""

import logging
from typing import List, Optional

import httpx
import numpy as np
from huggingface_hub import InferenceClient
from huggingface_hub.errors import HfHubHTTPError
from openai import OpenAI, OpenAIError

from core.errors import EmbeddingError, RAGError, StageTimeoutError
from core.timeouts import call_with_timeout

LOGGER = logging.getLogger(__name__)

BACKENDS = ("sentence-transformers", "openai", "huggingface")

DEFAULT_MODELS = {
    "sentence-transformers": "all-MiniLM-L6-v2",
    "openai": "text-embedding-3-small",
    "huggingface": "BAAI/bge-small-en-v1.5",
}

# OpenAI has a limit on batch size
OPENAI_BATCH_SIZE = 100


class EmbeddingModel:
    """Wrapper for embedding models with a single batch-oriented interface."""

    def __init__(
        self,
        backend: str = "sentence-transformers",
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client=None,
    ):
        if backend not in BACKENDS:
            raise ValueError(f"unknown embedding backend {backend!r}; expected one of {BACKENDS}")
        self.backend = backend
        self.model_name = model_name or DEFAULT_MODELS[backend]
        self.timeout = timeout
        self._dimension: Optional[int] = None
        self._client = client

        if self._client is None:
            self._client = self._create_client(api_key, base_url)
        LOGGER.info("Using %s embeddings: %s", self.backend, self.model_name)

    def _create_client(self, api_key: Optional[str], base_url: Optional[str]):
        if self.backend == "openai":
            client_kwargs = {"api_key": api_key, "base_url": base_url, "max_retries": 0}
            if self.timeout is not None:
                client_kwargs["timeout"] = self.timeout
            try:
                return OpenAI(**client_kwargs)
            except OpenAIError as exc:
                raise EmbeddingError(f"could not create OpenAI client: {exc}") from exc
        if self.backend == "huggingface":
            return InferenceClient(token=api_key, timeout=self.timeout)

        # sentence-transformers pulls in torch; only import it when needed.
        from sentence_transformers import SentenceTransformer

        LOGGER.info("Loading sentence-transformer model: %s", self.model_name)
        model = SentenceTransformer(self.model_name)
        self._dimension = model.get_sentence_embedding_dimension()
        LOGGER.info("Model loaded with dimension: %d", self._dimension)
        return model

    @property
    def dimension(self) -> Optional[int]:
        """Vector size, known once the model is loaded or has embedded something."""
        return self._dimension

    def embed(self, text: str) -> np.ndarray:
        """Embed a single text string."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> np.ndarray:
        """Embed a batch of texts; one float32 row per text."""
        if not texts:
            return np.zeros((0, self._dimension or 0), dtype=np.float32)

        cleaned = [t.strip() if t else "" for t in texts]
        try:
            vectors = call_with_timeout(
                self._embed, cleaned, timeout=self.timeout, stage="embed"
            )
        except RAGError:
            raise
        except httpx.TimeoutException as exc:
            raise StageTimeoutError(
                f"{self.backend} embedding request timed out", stage="embed"
            ) from exc
        except (
            OpenAIError,
            HfHubHTTPError,
            httpx.TransportError,
            OSError,
            ValueError,
            RuntimeError,
        ) as exc:
            raise EmbeddingError(
                f"{self.backend} embedding call failed: {exc}",
                details={"model": self.model_name, "texts": len(cleaned)},
            ) from exc

        matrix = np.asarray(vectors, dtype=np.float32)
        if matrix.ndim != 2 or matrix.shape[0] != len(cleaned):
            raise EmbeddingError(
                "embedding backend returned an unexpected shape",
                details={"shape": matrix.shape, "texts": len(cleaned)},
            )
        if self._dimension is None:
            self._dimension = int(matrix.shape[1])
        elif matrix.shape[1] != self._dimension:
            raise EmbeddingError(
                "embedding dimension changed between calls",
                details={"expected": self._dimension, "got": int(matrix.shape[1])},
            )
        return matrix

    def _embed(self, texts: List[str]):
        if self.backend == "openai":
            return self._embed_openai(texts)
        if self.backend == "huggingface":
            return self._embed_huggingface(texts)
        return self._embed_local(texts)

    def _embed_local(self, texts: List[str]) -> np.ndarray:
        """Use sentence-transformers for local embedding."""
        return self._client.encode(
            texts,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )

    def _embed_openai(self, texts: List[str]) -> List[List[float]]:
        """Use OpenAI API for embeddings."""
        all_embeddings = []
        for i in range(0, len(texts), OPENAI_BATCH_SIZE):
            batch = texts[i : i + OPENAI_BATCH_SIZE]
            response = self._client.embeddings.create(model=self.model_name, input=batch)
            all_embeddings.extend(item.embedding for item in response.data)
        return all_embeddings

    def _embed_huggingface(self, texts: List[str]) -> List[np.ndarray]:
        """Use the hosted feature-extraction task, one request per text."""
        rows = []
        for text in texts:
            output = np.asarray(self._client.feature_extraction(text, model=self.model_name))
            # Some models return token-level features; mean-pool them.
            while output.ndim > 1:
                output = output.mean(axis=0)
            rows.append(output)
        return rows
