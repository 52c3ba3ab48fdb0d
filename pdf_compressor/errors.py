"""
errors.py - Exceptions raised by the compressor.
"""

from typing import Optional


class CompressionError(Exception):
    """Base class for compressor failures."""


class DocumentOpenError(CompressionError):
    """Input could not be opened as a PDF."""


class EmptyDocumentError(CompressionError):
    """Document has no pages."""


class PageError(CompressionError):
    """A single page could not be processed; the whole pass is aborted."""

    stage = "process"

    def __init__(self, page_num: int, reason: Optional[str] = None):
        self.page_num = page_num
        self.reason = reason
        message = f"Page {page_num}: {self.stage} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class PageRenderError(PageError):
    stage = "render"


class PageEncodeError(PageError):
    stage = "encode"
