"""
rasterize.py - PDF page rendering and text sampling using PyMuPDF.

Fast in-memory rendering, one page at a time.
"""

import logging
from dataclasses import dataclass
from typing import List

import numpy as np
try:
    import fitz  # pip install pymupdf
except ImportError:
    import pymupdf as fitz  # apt install python3-pymupdf

from .document import SourceDocument

logger = logging.getLogger(__name__)


@dataclass
class RenderedPage:
    """A rasterized page and the point size it must be drawn back at."""
    page_num: int
    image: np.ndarray
    page_width_pts: float
    page_height_pts: float

    @property
    def pixel_width(self) -> int:
        return self.image.shape[1]

    @property
    def pixel_height(self) -> int:
        return self.image.shape[0]


def get_page_count(doc: SourceDocument) -> int:
    """Get total page count."""
    return doc.page_count


def get_page_text_fragments(doc: SourceDocument, page_num: int) -> List[str]:
    """
    Get the discrete text fragments (spans) on a page.

    Only used for density counting, so positions and fonts are dropped.
    """
    page = doc.page(page_num)
    text_dict = page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)

    fragments = []
    for block in text_dict.get("blocks", []):
        if block.get("type") != 0:  # Skip image blocks
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "").strip()
                if text:
                    fragments.append(text)
    return fragments


def rasterize_page(doc: SourceDocument, page_num: int, scale: float) -> RenderedPage:
    """
    Rasterize a single PDF page to an RGB image.

    Args:
        doc: Source document
        page_num: 0-indexed page number
        scale: Zoom factor, 1.0 = 72 DPI

    Returns:
        RenderedPage with the RGB numpy array and page size in points
    """
    page = doc.page(page_num)
    rect = page.rect

    # Render onto an opaque white background
    matrix = fitz.Matrix(scale, scale)
    pixmap = page.get_pixmap(matrix=matrix, alpha=False, colorspace=fitz.csRGB)

    image = np.frombuffer(pixmap.samples, dtype=np.uint8).reshape(
        pixmap.height, pixmap.width, pixmap.n
    ).copy()  # Copy to own the memory
    del pixmap

    logger.debug(
        f"Rasterized page {page_num}: {image.shape[1]}x{image.shape[0]} @ {scale:.2f}x"
    )

    return RenderedPage(
        page_num=page_num,
        image=image,
        page_width_pts=rect.width,
        page_height_pts=rect.height
    )
