"""Tests for environment-driven settings."""

import pytest

from core.config import DEFAULT_SEPARATORS, Settings


def test_defaults_from_empty_environment():
    settings = Settings.from_env({})

    assert settings.chat_model == "gpt-3.5-turbo"
    assert settings.temperature == 0.7
    assert settings.max_tokens == 100
    assert settings.chunk_size == 500
    assert settings.chunk_overlap == 50
    assert settings.top_k == 2
    assert settings.separators == DEFAULT_SEPARATORS
    assert settings.vector_backend == "memory"
    assert settings.chroma_url == "http://localhost:8000"
    assert settings.chroma_collection == "langchain"
    assert settings.openai_api_key is None


def test_values_are_read_and_converted():
    settings = Settings.from_env(
        {
            "OPENAI_API_KEY": "sk-test",
            "OPENAI_MODEL": "gpt-4o-mini",
            "OPENAI_TEMPERATURE": "0.2",
            "OPENAI_MAX_TOKENS": "256",
            "CHUNK_SIZE": "800",
            "CHUNK_OVERLAP": "80",
            "RAG_TOP_K": "4",
            "VECTOR_BACKEND": "chroma",
            "CHROMA_COLLECTION": "docs",
            "REQUEST_TIMEOUT": "12.5",
        }
    )

    assert settings.openai_api_key == "sk-test"
    assert settings.chat_model == "gpt-4o-mini"
    assert settings.temperature == 0.2
    assert settings.max_tokens == 256
    assert (settings.chunk_size, settings.chunk_overlap, settings.top_k) == (800, 80, 4)
    assert settings.vector_backend == "chroma"
    assert settings.chroma_collection == "docs"
    assert settings.request_timeout == 12.5


def test_process_environment_is_used_by_default(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RAG_TOP_K", "7")
    assert Settings.from_env().top_k == 7


@pytest.mark.parametrize("name", ["CHUNK_SIZE", "OPENAI_TEMPERATURE", "RAG_TOP_K"])
def test_invalid_numbers_name_the_variable(name):
    with pytest.raises(ValueError, match=name):
        Settings.from_env({name: "lots"})


def test_separators_are_read_as_json_list():
    settings = Settings.from_env({"CHUNK_SEPARATORS": '[". \\n", " "]'})
    assert settings.separators == (". \n", " ")


@pytest.mark.parametrize("raw", ["not json", "[]", '". \\n"', "[1, 2]"])
def test_invalid_separators_name_the_variable(raw):
    with pytest.raises(ValueError, match="CHUNK_SEPARATORS"):
        Settings.from_env({"CHUNK_SEPARATORS": raw})
