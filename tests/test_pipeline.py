"""End-to-end pipeline tests with a deterministic embedder and a mocked chat client."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from chunking.recursive import RecursiveTextSplitter, SplitterConfig
from conftest import FailingEmbedder
from core.chroma_index import ChromaVectorIndex
from core.config import Settings
from core.document import TextUnit
from core.errors import EmbeddingError, GenerationError, LoadError
from core.index import InMemoryVectorIndex, VectorIndex
from core.pipeline import RAGPipeline, create_vector_index
from core.retriever import Retriever
from generation.answer import AnswerGenerator


def _chat_client(answer: str = "Use LangChain to compose LLM applications."):
    client = MagicMock()
    message = SimpleNamespace(content=answer)
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason="stop")]
    )
    return client


def _pipeline(embedder, client) -> RAGPipeline:
    index = InMemoryVectorIndex(embedder)
    return RAGPipeline(
        splitter=RecursiveTextSplitter(SplitterConfig(chunk_size=200, chunk_overlap=20)),
        index=index,
        retriever=Retriever(index, embedder),
        generator=AnswerGenerator(client=client),
    )


class TestRAGPipeline:
    def test_ingest_then_ask(self, embedder, long_text):
        client = _chat_client()
        pipeline = _pipeline(embedder, client)

        indexed = pipeline.ingest([TextUnit("langchain", long_text)])
        result = pipeline.ask("Sentence number 42 talks about what?", k=2)

        assert len(indexed) == len(pipeline.index) > 1
        assert result.answer.text == "Use LangChain to compose LLM applications."
        assert len(result.retrieved) == 2
        user_message = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert user_message.startswith("User: Sentence number 42 talks about what?\n\n")
        assert result.retrieved.texts[0] in user_message

    def test_ingesting_the_same_document_twice_is_idempotent(self, embedder, long_text):
        pipeline = _pipeline(embedder, _chat_client())
        unit = TextUnit("langchain", long_text)

        first = pipeline.ingest([unit])
        second = pipeline.ingest([unit])

        assert second == []
        assert len(pipeline.index) == len(first)

    def test_ingest_path(self, embedder, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("LangChain chains prompts and models together.", encoding="utf-8")
        pipeline = _pipeline(embedder, _chat_client())

        assert len(pipeline.ingest_path(path)) == 1

    def test_ask_on_empty_index_still_answers(self, embedder):
        client = _chat_client("I don't know.")
        result = _pipeline(embedder, client).ask("anything?")
        assert len(result.retrieved) == 0
        assert result.answer.text == "I don't know."

    def test_load_failure_reports_stage(self, embedder, tmp_path):
        with pytest.raises(LoadError) as excinfo:
            _pipeline(embedder, _chat_client()).ingest_path(tmp_path / "langchain.pdf")
        assert excinfo.value.stage == "load"

    def test_embedding_failure_reports_stage(self, long_text):
        pipeline = _pipeline(FailingEmbedder(), _chat_client())
        with pytest.raises(EmbeddingError) as excinfo:
            pipeline.ingest([TextUnit("langchain", long_text)])
        assert excinfo.value.stage == "embed"
        assert len(pipeline.index) == 0

    def test_generation_failure_leaves_index_unchanged(self, embedder, long_text):
        client = _chat_client()
        request = httpx.Request("POST", "http://127.0.0.1:1/v1/chat/completions")
        client.chat.completions.create.side_effect = openai.APIConnectionError(request=request)
        pipeline = _pipeline(embedder, client)
        pipeline.ingest([TextUnit("langchain", long_text)])
        size = len(pipeline.index)

        with pytest.raises(GenerationError) as excinfo:
            pipeline.ask("When to use LangChain?")
        assert excinfo.value.stage == "generate"
        assert len(pipeline.index) == size


class TestCreateVectorIndex:
    def test_memory_backend(self, embedder):
        index = create_vector_index(Settings(vector_backend="memory"), embedder)
        assert isinstance(index, InMemoryVectorIndex)

    def test_chroma_backend_unreachable(self, embedder):
        settings = Settings(vector_backend="chroma", chroma_url="http://127.0.0.1:1", request_timeout=30)
        with pytest.raises(ConnectionError):
            create_vector_index(settings, embedder)

    def test_unknown_backend(self, embedder):
        with pytest.raises(ValueError, match="unknown vector backend"):
            create_vector_index(Settings(vector_backend="pinecone"), embedder)

    def test_backends_share_one_interface(self):
        assert issubclass(InMemoryVectorIndex, VectorIndex)
        assert issubclass(ChromaVectorIndex, VectorIndex)
