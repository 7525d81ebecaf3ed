"""Tests for the Chroma-backed vector index, using an in-process Chroma client."""

import uuid
from unittest.mock import MagicMock

import chromadb
import httpx
import pytest

from conftest import FailingEmbedder, make_chunks
from core.chroma_index import ChromaVectorIndex
from core.errors import EmbeddingError, StoreConnectionError


@pytest.fixture(scope="module")
def chroma_client():
    return chromadb.EphemeralClient()


@pytest.fixture
def chroma_index(chroma_client, embedder):
    return ChromaVectorIndex(
        embedder, collection_name=f"test-{uuid.uuid4().hex[:12]}", client=chroma_client
    )


class TestChromaVectorIndex:
    def test_add_and_self_match(self, chroma_index, embedder, sample_texts):
        chunks = make_chunks(sample_texts)
        entries = chroma_index.add(chunks)

        assert len(entries) == len(chunks)
        assert len(chroma_index) == len(chunks)

        results = chroma_index.query(embedder.embed(chunks[2].text), k=1)
        assert len(results) == 1
        chunk, score = results[0]
        assert chunk.id == chunks[2].id
        assert chunk.text == chunks[2].text
        assert chunk.source_ref == "doc"
        assert chunk.metadata["chunk_idx"] == "2"
        assert score == pytest.approx(1.0, abs=1e-3)

    def test_query_on_empty_collection_returns_nothing(self, chroma_index, embedder):
        assert chroma_index.query(embedder.embed("anything"), k=2) == []

    def test_results_are_bounded_and_ordered(self, chroma_index, embedder, sample_texts):
        chroma_index.add(make_chunks(sample_texts))
        results = chroma_index.query(embedder.embed("embedding database"), k=3)
        scores = [score for _, score in results]
        assert len(results) == 3
        assert scores == sorted(scores, reverse=True)

    def test_re_adding_is_idempotent(self, chroma_index, sample_texts):
        chunks = make_chunks(sample_texts)
        chroma_index.add(chunks)
        assert chroma_index.add(chunks) == []
        assert len(chroma_index) == len(chunks)

    def test_data_is_shared_by_collection_name(self, chroma_client, embedder, sample_texts):
        name = f"shared-{uuid.uuid4().hex[:12]}"
        ChromaVectorIndex(embedder, collection_name=name, client=chroma_client).add(
            make_chunks(sample_texts)
        )
        reopened = ChromaVectorIndex(embedder, collection_name=name, client=chroma_client)
        assert len(reopened) == len(sample_texts)

    def test_failed_embedding_stores_nothing(self, chroma_client, sample_texts):
        index = ChromaVectorIndex(
            FailingEmbedder(), collection_name=f"fail-{uuid.uuid4().hex[:12]}", client=chroma_client
        )
        with pytest.raises(EmbeddingError):
            index.add(make_chunks(sample_texts))
        assert len(index) == 0


class TestChromaConnection:
    def test_unreachable_server_raises_connection_error(self, embedder):
        with pytest.raises(ConnectionError) as excinfo:
            ChromaVectorIndex(embedder, url="http://127.0.0.1:1", timeout=30)
        assert isinstance(excinfo.value, StoreConnectionError)
        assert excinfo.value.stage == "index"

    def test_lost_connection_during_query(self, embedder):
        client = MagicMock()
        collection = client.get_or_create_collection.return_value
        collection.count.return_value = 3
        collection.query.side_effect = httpx.ConnectError("[Errno 111] Connection refused")
        index = ChromaVectorIndex(embedder, client=client)

        with pytest.raises(StoreConnectionError):
            index.query(embedder.embed("question"), k=2)

    def test_lost_connection_during_add(self, embedder, sample_texts):
        client = MagicMock()
        collection = client.get_or_create_collection.return_value
        collection.count.return_value = 0
        collection.get.return_value = {"ids": []}
        collection.upsert.side_effect = httpx.ConnectError("[Errno 111] Connection refused")
        index = ChromaVectorIndex(embedder, client=client)

        with pytest.raises(ConnectionError):
            index.add(make_chunks(sample_texts))
