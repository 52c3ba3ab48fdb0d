"""
engine.py - Rendering/encoding/assembly adapters behind one object.

The analyzer, orchestrator and estimator only talk to an engine, so the
PyMuPDF/Pillow/pikepdf stack can be swapped for a fake in tests.
"""

from typing import List

import numpy as np

from .compression import EncodedImage, encode_bitmap, JPEG
from .document import SourceDocument
from .pdf_writer import PDFWriter
from .rasterize import RenderedPage, get_page_count, get_page_text_fragments, rasterize_page


class PageEngine:
    """Default engine: PyMuPDF rendering, Pillow/OpenCV encoding, pikepdf assembly."""

    def page_count(self, doc: SourceDocument) -> int:
        return get_page_count(doc)

    def page_text_fragments(self, doc: SourceDocument, page_num: int) -> List[str]:
        return get_page_text_fragments(doc, page_num)

    def render_page(self, doc: SourceDocument, page_num: int, scale: float) -> RenderedPage:
        return rasterize_page(doc, page_num, scale)

    def encode_bitmap(
        self,
        image: np.ndarray,
        mime_type: str = JPEG,
        quality: float = 0.7
    ) -> EncodedImage:
        return encode_bitmap(image, mime_type=mime_type, quality=quality)

    def new_writer(self) -> PDFWriter:
        return PDFWriter()


DEFAULT_ENGINE = PageEngine()
