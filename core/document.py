"""Text units produced by the document loaders."""

from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class TextUnit:
    """A body of raw text plus the identifier of the source it came from."""

    source_id: str
    text: str
    metadata: Dict[str, str] = field(default_factory=dict)
