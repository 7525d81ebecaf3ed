"""Environment-driven settings shared by the pipeline and the demos."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

_ENV_FILE = Path(".env")

DEFAULT_SEPARATORS: Tuple[str, ...] = ("\n\n", "\n", " ", "")


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _read_float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _read_separators(env: Mapping[str, str], name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    """Separators are given as a JSON list of strings, e.g. `[". \\n", " "]`."""
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a JSON list of strings, got {raw!r}") from exc
    if not isinstance(value, list) or not value or not all(isinstance(s, str) for s in value):
        raise ValueError(f"{name} must be a non-empty JSON list of strings, got {raw!r}")
    return tuple(value)


@dataclass
class Settings:
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    chat_model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    max_tokens: int = 100
    hf_token: Optional[str] = None
    embedding_backend: str = "sentence-transformers"
    embedding_model: Optional[str] = None
    chunk_size: int = 500
    chunk_overlap: int = 50
    separators: Tuple[str, ...] = field(default=DEFAULT_SEPARATORS)
    top_k: int = 2
    vector_backend: str = "memory"
    chroma_url: str = "http://localhost:8000"
    chroma_collection: str = "langchain"
    request_timeout: Optional[float] = 60.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        A `.env` file in the working directory is loaded first when reading
        from the process environment; explicit `env` mappings are used as-is.
        """
        if env is None:
            if _ENV_FILE.exists():
                load_dotenv(_ENV_FILE)
            env = os.environ

        return cls(
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            openai_base_url=env.get("OPENAI_BASE_URL") or None,
            chat_model=env.get("OPENAI_MODEL") or cls.chat_model,
            temperature=_read_float(env, "OPENAI_TEMPERATURE", cls.temperature),
            max_tokens=_read_int(env, "OPENAI_MAX_TOKENS", cls.max_tokens),
            hf_token=env.get("HF_TOKEN") or None,
            embedding_backend=env.get("EMBEDDING_BACKEND") or cls.embedding_backend,
            embedding_model=env.get("EMBEDDING_MODEL") or None,
            chunk_size=_read_int(env, "CHUNK_SIZE", cls.chunk_size),
            chunk_overlap=_read_int(env, "CHUNK_OVERLAP", cls.chunk_overlap),
            separators=_read_separators(env, "CHUNK_SEPARATORS", DEFAULT_SEPARATORS),
            top_k=_read_int(env, "RAG_TOP_K", cls.top_k),
            vector_backend=env.get("VECTOR_BACKEND") or cls.vector_backend,
            chroma_url=env.get("CHROMA_URL") or cls.chroma_url,
            chroma_collection=env.get("CHROMA_COLLECTION") or cls.chroma_collection,
            request_timeout=_read_float(env, "REQUEST_TIMEOUT", cls.request_timeout),
        )
