"""
document.py - Read-only handle over a loaded PDF.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

try:
    import fitz  # pip install pymupdf
except ImportError:
    import pymupdf as fitz  # apt install python3-pymupdf

from .errors import DocumentOpenError

logger = logging.getLogger(__name__)


class SourceDocument:
    """
    An already-loaded PDF: original bytes plus an open PyMuPDF document.

    The compressor never mutates it. Close it (or use it as a context
    manager) when done.
    """

    def __init__(self, data: bytes, name: str = "document.pdf"):
        self.data = bytes(data)
        self.name = name
        try:
            self._doc = fitz.open(stream=self.data, filetype="pdf")
        except Exception as e:
            raise DocumentOpenError(f"Could not open {name}: {e}") from e
        logger.debug(f"Opened {name}: {len(self._doc)} pages, {len(self.data):,} bytes")

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "SourceDocument":
        path = Path(path)
        return cls(path.read_bytes(), name=path.name)

    @property
    def fitz_document(self):
        if self._doc is None:
            raise DocumentOpenError(f"{self.name} is closed")
        return self._doc

    @property
    def page_count(self) -> int:
        return len(self.fitz_document)

    @property
    def original_size(self) -> int:
        return len(self.data)

    def page(self, page_num: int):
        return self.fitz_document[page_num]

    def close(self):
        if self._doc is not None:
            self._doc.close()
            self._doc = None

    def __enter__(self) -> "SourceDocument":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._doc is None else f"{len(self._doc)} pages"
        return f"<SourceDocument {self.name!r} {self.original_size:,} bytes, {state}>"


@contextmanager
def open_document(source: Union[SourceDocument, bytes, str, Path]) -> Iterator[SourceDocument]:
    """
    Yield a SourceDocument for bytes, a path or an existing handle.

    Handles opened here are closed on exit; a handle passed in is left open.
    """
    if isinstance(source, (bytes, bytearray)):
        doc = SourceDocument(source)
    elif isinstance(source, (str, Path)):
        doc = SourceDocument.from_path(source)
    else:
        yield source
        return

    try:
        yield doc
    finally:
        doc.close()
