"""Load -> split -> index -> retrieve -> generate, wired from explicit components."""

import logging
from dataclasses import dataclass
from typing import List, Sequence

from chunking.recursive import RecursiveTextSplitter, SplitterConfig
from core.chroma_index import ChromaVectorIndex
from core.config import Settings
from core.document import TextUnit
from core.embeddings import EmbeddingModel
from core.index import EmbeddedChunk, InMemoryVectorIndex, VectorIndex
from core.retriever import Query, RetrievalResult, Retriever
from generation.answer import Answer, AnswerGenerator
from ingestion.loaders import load_document

LOGGER = logging.getLogger(__name__)

VECTOR_BACKENDS = ("memory", "chroma")


@dataclass(frozen=True)
class PipelineResult:
    answer: Answer
    retrieved: RetrievalResult


def create_embedder(settings: Settings) -> EmbeddingModel:
    api_key = settings.hf_token if settings.embedding_backend == "huggingface" else settings.openai_api_key
    return EmbeddingModel(
        backend=settings.embedding_backend,
        model_name=settings.embedding_model,
        api_key=api_key,
        base_url=settings.openai_base_url,
        timeout=settings.request_timeout,
    )


def create_vector_index(settings: Settings, embedder) -> VectorIndex:
    """Pick the index backend named by `settings.vector_backend`."""
    if settings.vector_backend == "memory":
        return InMemoryVectorIndex(embedder)
    if settings.vector_backend == "chroma":
        return ChromaVectorIndex(
            embedder,
            collection_name=settings.chroma_collection,
            url=settings.chroma_url,
            timeout=settings.request_timeout,
        )
    raise ValueError(
        f"unknown vector backend {settings.vector_backend!r}; expected one of {VECTOR_BACKENDS}"
    )


class RAGPipeline:
    """
    Runs the stages strictly in order for one request.

    Errors from any stage propagate unchanged and carry the failing stage in
    their `stage` attribute. Nothing is retried.
    """

    def __init__(
        self,
        splitter: RecursiveTextSplitter,
        index: VectorIndex,
        retriever: Retriever,
        generator: AnswerGenerator,
    ):
        self.splitter = splitter
        self.index = index
        self.retriever = retriever
        self.generator = generator

    @classmethod
    def from_settings(cls, settings: Settings) -> "RAGPipeline":
        splitter = RecursiveTextSplitter(
            SplitterConfig(
                separators=tuple(settings.separators),
                chunk_size=settings.chunk_size,
                chunk_overlap=settings.chunk_overlap,
            )
        )
        embedder = create_embedder(settings)
        index = create_vector_index(settings, embedder)
        generator = AnswerGenerator(
            model=settings.chat_model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.request_timeout,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )
        return cls(splitter, index, Retriever(index, embedder), generator)

    def ingest(self, units: Sequence[TextUnit]) -> List[EmbeddedChunk]:
        """Split and index text units; returns the newly indexed chunks."""
        chunks = self.splitter.split_many(units)
        LOGGER.info("Embedding %d chunks...", len(chunks))
        return self.index.add(chunks)

    def ingest_path(self, path, split_pages: bool = False) -> List[EmbeddedChunk]:
        return self.ingest(load_document(path, split_pages=split_pages))

    def ask(self, question: str, k: int = 2) -> PipelineResult:
        retrieved = self.retriever.retrieve(Query(text=question, k=k))
        LOGGER.info("Retrieved %d chunks for the question", len(retrieved))
        answer = self.generator.generate(question, retrieved.texts)
        return PipelineResult(answer=answer, retrieved=retrieved)
