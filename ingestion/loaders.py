"""Document loaders for PDF and plain-text sources."""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import fitz  # pymupdf
import pdfplumber
from PyPDF2 import PdfReader

from core.document import TextUnit
from core.errors import LoadError

LOGGER = logging.getLogger(__name__)

DEFAULT_TEXT_EXTENSIONS = {".txt", ".md", ".rst", ".json", ".csv"}
PDF_EXTENSIONS = {".pdf"}

PAGE_SEPARATOR = "\n\n"


def _extract_pages_pymupdf(path: Path) -> List[str]:
    """Extract text using PyMuPDF (fitz) - best for complex PDFs."""
    with fitz.open(str(path)) as doc:
        return [page.get_text("text") for page in doc]


def _extract_pages_pdfplumber(path: Path) -> List[str]:
    """Extract text using pdfplumber - good for tables and structured PDFs."""
    with pdfplumber.open(str(path)) as pdf:
        return [page.extract_text() or "" for page in pdf.pages]


def _extract_pages_pypdf2(path: Path) -> List[str]:
    """Extract text using PyPDF2 - basic fallback."""
    reader = PdfReader(str(path))
    return [page.extract_text() or "" for page in reader.pages]


EXTRACTORS = [
    ("PyMuPDF", _extract_pages_pymupdf),
    ("pdfplumber", _extract_pages_pdfplumber),
    ("PyPDF2", _extract_pages_pypdf2),
]


def extract_pdf_pages(path: Path) -> List[str]:
    """
    Extract per-page text from a PDF using the best available library.

    Tries PyMuPDF first (best quality), then pdfplumber, then PyPDF2, and
    raises LoadError when none of them yields any text.
    """
    failures = {}
    for name, extractor in EXTRACTORS:
        try:
            pages = extractor(path)
        except Exception as exc:
            LOGGER.debug("%s failed for %s: %s", name, path, exc)
            failures[name] = str(exc)
            continue
        if any(page.strip() for page in pages):
            LOGGER.info(
                "Extracted %d pages (%d chars) from %s using %s",
                len(pages),
                sum(len(p) for p in pages),
                path.name,
                name,
            )
            return pages
        failures[name] = "no text"

    raise LoadError(f"could not extract text from PDF: {path}", details=failures)


def load_text_file(path: Path) -> str:
    """Load a plain text file."""
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return path.read_text(encoding="latin-1")


def load_document(path, split_pages: bool = False) -> List[TextUnit]:
    """
    Load a document into text units.

    By default the whole document becomes one unit. With `split_pages` each
    non-empty PDF page becomes its own unit, tagged with its page number.
    """
    path = Path(path)
    if not path.exists():
        raise LoadError(f"file does not exist: {path}")
    if not path.is_file():
        raise LoadError(f"not a file: {path}")

    suffix = path.suffix.lower()
    metadata = {
        "source": str(path.resolve()),
        "filename": path.name,
        "extension": suffix,
    }

    if suffix in PDF_EXTENSIONS:
        pages = extract_pdf_pages(path)
    elif suffix in DEFAULT_TEXT_EXTENSIONS:
        try:
            pages = [load_text_file(path)]
        except OSError as exc:
            raise LoadError(f"could not read {path}: {exc}") from exc
    else:
        raise LoadError(f"unsupported file type: {suffix or path.name}")

    if not any(page.strip() for page in pages):
        raise LoadError(f"no text content in {path}")

    if not split_pages or len(pages) == 1:
        text = PAGE_SEPARATOR.join(page for page in pages if page.strip())
        return [TextUnit(source_id=path.stem, text=text, metadata=metadata)]

    units = []
    for number, page in enumerate(pages, 1):
        if not page.strip():
            continue
        units.append(
            TextUnit(
                source_id=f"{path.stem}-p{number}",
                text=page,
                metadata={**metadata, "page": str(number)},
            )
        )
    return units


def _collect_paths(directory: str, extensions: Sequence[str]) -> List[Path]:
    """Recursively collect all files with given extensions."""
    root = Path(directory)
    if not root.is_dir():
        raise LoadError(f"not a directory: {directory}")

    matches: List[Path] = []
    for path in root.rglob("*"):
        if path.is_file() and path.suffix.lower() in extensions:
            matches.append(path)

    return sorted(matches)


def load_documents_from_paths(
    paths: Iterable, split_pages: bool = False, max_workers: int = 4
) -> List[TextUnit]:
    """Load documents in parallel; results keep the order of `paths`."""
    path_list = [Path(p) for p in paths if p]
    if not path_list:
        return []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(load_document, path, split_pages) for path in path_list]
        units: List[TextUnit] = []
        for path, future in zip(path_list, futures):
            loaded = future.result()
            LOGGER.info("Loaded: %s (%d units)", path.name, len(loaded))
            units.extend(loaded)

    return units


def load_documents_from_directory(
    directory: str,
    extensions: Optional[Sequence[str]] = None,
    split_pages: bool = False,
    max_workers: int = 4,
) -> List[TextUnit]:
    """Load all supported documents from a directory."""
    if extensions is None:
        extensions = list(DEFAULT_TEXT_EXTENSIONS | PDF_EXTENSIONS)

    paths = _collect_paths(directory, extensions)
    if not paths:
        LOGGER.warning("No supported files found in %s", directory)
        return []

    LOGGER.info("Found %d files to process in %s", len(paths), directory)
    return load_documents_from_paths(paths, split_pages, max_workers)
