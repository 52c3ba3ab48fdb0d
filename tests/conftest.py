"""
Pytest configuration for compressor tests.

Real PDFs are generated with PyMuPDF; orchestration tests use a fake
engine that records adapter calls and produces deterministic sizes.
"""

import io
from types import SimpleNamespace

import numpy as np
import pytest
from PIL import Image

try:
    import fitz
except ImportError:
    import pymupdf as fitz

from pdf_compressor.compression import EncodedImage, encode_bitmap
from pdf_compressor.document import SourceDocument
from pdf_compressor.rasterize import RenderedPage


@pytest.fixture
def anyio_backend():
    return "asyncio"


# --- Real documents -------------------------------------------------------

def make_text_pdf(pages: int = 1, lines_per_page: int = 5) -> bytes:
    doc = fitz.open()
    for p in range(pages):
        page = doc.new_page(width=612, height=792)
        for i in range(lines_per_page):
            page.insert_text((50, 60 + i * 22), f"Page {p + 1} line {i + 1}: plain sample text")
    data = doc.tobytes(garbage=4, deflate=True)
    doc.close()
    return data


def make_noise_pdf(pages: int = 2, pixels: int = 700, seed: int = 7) -> bytes:
    """Image-only pages filled with random noise (stored losslessly)."""
    rng = np.random.default_rng(seed)
    doc = fitz.open()
    for _ in range(pages):
        arr = rng.integers(0, 256, size=(pixels, pixels, 3), dtype=np.uint8)
        buffer = io.BytesIO()
        Image.fromarray(arr).save(buffer, format="PNG")
        page = doc.new_page(width=612, height=792)
        page.insert_image(page.rect, stream=buffer.getvalue(), keep_proportion=False)
    data = doc.tobytes(garbage=4, deflate=True)
    doc.close()
    return data


@pytest.fixture
def text_pdf():
    with SourceDocument(make_text_pdf(pages=1, lines_per_page=5), name="text.pdf") as doc:
        yield doc


@pytest.fixture
def text_heavy_pdf():
    with SourceDocument(make_text_pdf(pages=4, lines_per_page=30), name="dense.pdf") as doc:
        yield doc


@pytest.fixture
def noise_pdf():
    with SourceDocument(make_noise_pdf(pages=2), name="noise.pdf") as doc:
        yield doc


# --- Fake engine ----------------------------------------------------------

class FakeWriter:
    def __init__(self, overhead: int):
        self.overhead = overhead
        self.pages = []
        self.closed = False

    def add_page(self, compressed):
        self.pages.append(compressed)

    def serialize(self) -> bytes:
        return b"P" * (self.overhead + sum(p.total_size for p in self.pages))

    def close(self):
        self.closed = True


class FakeEngine:
    """
    Engine whose per-page output size is `size_fn(scale, quality)`.

    Records every render call as (page_num, scale).
    """

    def __init__(
        self,
        page_count=10,
        size_fn=None,
        fragments_per_page=0,
        overhead=1000,
        fail_on_page=None,
        fail_text=False
    ):
        self._page_count = page_count
        self.size_fn = size_fn or (lambda scale, quality: int(100_000 * scale * scale * quality))
        self.fragments_per_page = fragments_per_page
        self.overhead = overhead
        self.fail_on_page = fail_on_page
        self.fail_text = fail_text
        self.render_calls = []
        self.text_calls = []
        self.writers = []

    def page_count(self, doc):
        return self._page_count

    def page_text_fragments(self, doc, page_num):
        self.text_calls.append(page_num)
        if self.fail_text:
            raise RuntimeError("text extraction exploded")
        return ["word"] * self.fragments_per_page

    def render_page(self, doc, page_num, scale):
        self.render_calls.append((page_num, scale))
        if page_num == self.fail_on_page:
            raise RuntimeError("render exploded")
        return RenderedPage(
            page_num=page_num,
            image=np.full((4, 4, 3), scale, dtype=np.float64),
            page_width_pts=612,
            page_height_pts=792
        )

    def encode_bitmap(self, image, mime_type="image/jpeg", quality=0.7):
        scale = float(image[0, 0, 0])
        size = self.size_fn(scale, quality)
        return EncodedImage(data=b"J" * size, width=4, height=4, is_color=True, mime_type=mime_type)

    def new_writer(self):
        writer = FakeWriter(self.overhead)
        self.writers.append(writer)
        return writer

    @property
    def scales_rendered(self):
        return sorted({scale for _, scale in self.render_calls})


class PreviewEngine(FakeEngine):
    """Fake engine that returns real (tiny) JPEGs so previews can decode them."""

    def encode_bitmap(self, image, mime_type="image/jpeg", quality=0.7):
        scale = float(image[0, 0, 0])
        pixels = max(8, int(40 * scale))
        return encode_bitmap(
            np.full((pixels, pixels, 3), 200, dtype=np.uint8),
            mime_type=mime_type,
            quality=quality
        )


def fake_doc(size: int, name: str = "fake.pdf"):
    return SimpleNamespace(data=b"%" * size, name=name)


@pytest.fixture
def fake_engine():
    return FakeEngine


@pytest.fixture
def preview_engine():
    return PreviewEngine


@pytest.fixture
def make_fake_doc():
    return fake_doc


@pytest.fixture
def pdf_bytes():
    return SimpleNamespace(text=make_text_pdf, noise=make_noise_pdf)
