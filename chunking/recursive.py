"""Recursive character splitting with fixed-size character overlap."""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from core.chunk import Chunk
from core.config import DEFAULT_SEPARATORS
from core.document import TextUnit
from core.errors import SplitError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitterConfig:
    separators: Tuple[str, ...] = field(default=DEFAULT_SEPARATORS)
    chunk_size: int = 500
    chunk_overlap: int = 50
    is_separator_regex: bool = False

    def validate(self) -> None:
        if self.chunk_size <= 0:
            raise SplitError("chunk_size must be positive", details={"chunk_size": self.chunk_size})
        if self.chunk_overlap < 0:
            raise SplitError(
                "chunk_overlap must not be negative", details={"chunk_overlap": self.chunk_overlap}
            )
        if self.chunk_overlap >= self.chunk_size:
            raise SplitError(
                "chunk_overlap must be smaller than chunk_size",
                details={"chunk_size": self.chunk_size, "chunk_overlap": self.chunk_overlap},
            )
        if not self.separators:
            raise SplitError("at least one separator is required")
        if self.is_separator_regex:
            for separator in self.separators:
                try:
                    re.compile(separator)
                except re.error as exc:
                    raise SplitError(
                        f"invalid separator pattern: {exc}", details={"separator": separator}
                    ) from exc


def _split_keeping_separator(text: str, pattern: str) -> List[str]:
    """Split on `pattern`, leaving each separator at the end of its piece."""
    pieces = []
    start = 0
    for match in re.finditer(pattern, text):
        end = match.end()
        if end == start or end == len(text):
            continue
        pieces.append(text[start:end])
        start = end
    pieces.append(text[start:])
    return [p for p in pieces if p]


def _merge_pieces(pieces: Sequence[str], limit: int) -> List[str]:
    """Greedily join neighbouring pieces while they fit in `limit`."""
    merged: List[str] = []
    current = ""
    for piece in pieces:
        if current and len(current) + len(piece) > limit:
            merged.append(current)
            current = ""
        current += piece
    if current:
        merged.append(current)
    return merged


class RecursiveTextSplitter:
    """
    Split text on an ordered list of separators, largest boundaries first.

    Pieces are kept contiguous so that prefixing each chunk with the tail of
    the previous one reproduces the source text exactly. A piece that no
    separator can break is emitted whole, even if it exceeds chunk_size.
    """

    def __init__(self, config: SplitterConfig = SplitterConfig()):
        config.validate()
        self.config = config
        self._piece_limit = config.chunk_size - config.chunk_overlap

    def _pattern(self, separator: str) -> str:
        return separator if self.config.is_separator_regex else re.escape(separator)

    def _split_recursive(self, text: str, separators: Sequence[str]) -> List[str]:
        if len(text) <= self._piece_limit:
            return [text]

        for position, separator in enumerate(separators):
            splits = _split_keeping_separator(text, self._pattern(separator))
            if len(splits) > 1:
                remaining = separators[position + 1 :]
                break
        else:
            LOGGER.debug("No separator applies to a %d-char piece; keeping it whole", len(text))
            return [text]

        pieces: List[str] = []
        pending: List[str] = []
        for split in splits:
            if len(split) <= self._piece_limit:
                pending.append(split)
                continue
            pieces.extend(_merge_pieces(pending, self._piece_limit))
            pending = []
            pieces.extend(self._split_recursive(split, remaining))
        pieces.extend(_merge_pieces(pending, self._piece_limit))
        return pieces

    def split_text(self, text: str) -> List[str]:
        """Return the chunk texts for `text`, overlap included."""
        if not text or not text.strip():
            return []

        overlap = self.config.chunk_overlap
        texts: List[str] = []
        previous = ""
        for piece in self._split_recursive(text, list(self.config.separators)):
            head = previous[-overlap:] if overlap and previous else ""
            previous = head + piece
            texts.append(previous)
        return texts

    def split(self, unit: TextUnit) -> List[Chunk]:
        """Split a text unit into an ordered sequence of chunks."""
        chunks = []
        for idx, text in enumerate(self.split_text(unit.text)):
            digest = hashlib.sha1(text.encode("utf-8")).hexdigest()[:10]
            chunks.append(
                Chunk(
                    id=f"{unit.source_id}-{idx}-{digest}",
                    text=text,
                    source_ref=unit.source_id,
                    metadata={
                        **unit.metadata,
                        "chunk_idx": str(idx),
                    },
                )
            )

        if chunks:
            LOGGER.info(
                "Split '%s' -> %d chunks (avg %d chars)",
                unit.source_id,
                len(chunks),
                sum(len(c.text) for c in chunks) // len(chunks),
            )
        return chunks

    def split_many(self, units: Sequence[TextUnit]) -> List[Chunk]:
        """Split several text units, preserving their order."""
        chunks: List[Chunk] = []
        for unit in units:
            chunks.extend(self.split(unit))
        return chunks
