"""
pdf_writer.py - PDF assembly from encoded page images.

Supports:
- JPEG images (DCTDecode), embedded as-is
- Lossless images (FlateDecode), decoded and deflated
"""

import io
import logging
import zlib
from dataclasses import dataclass

import pikepdf
from pikepdf import Pdf, Stream, Dictionary, Name

from .compression import EncodedImage, JPEG

logger = logging.getLogger(__name__)


@dataclass
class CompressedPage:
    """Encoded page plus the point size it is drawn at."""
    page_num: int
    image: EncodedImage
    page_width_pts: float
    page_height_pts: float

    @property
    def total_size(self) -> int:
        return self.image.total_size


class PDFWriter:
    """
    Assembles encoded page images into a new PDF.

    Each image is scaled back to the page's original point size when
    drawn, so the output keeps the source page geometry.
    """

    def __init__(self):
        self.pdf = Pdf.new()
        self.page_count = 0

    def append_page(self, width_pts: float, height_pts: float) -> pikepdf.Page:
        """Append a blank page of the given size in points."""
        self.pdf.add_blank_page(page_size=(width_pts, height_pts))
        return self.pdf.pages[-1]

    def embed_image(self, image: EncodedImage) -> pikepdf.Object:
        """Embed an encoded image as an indirect XObject."""
        colorspace = Name.DeviceRGB if image.is_color else Name.DeviceGray

        if image.mime_type == JPEG:
            image_dict = Dictionary({
                '/Type': Name.XObject,
                '/Subtype': Name.Image,
                '/Width': image.width,
                '/Height': image.height,
                '/ColorSpace': colorspace,
                '/BitsPerComponent': 8,
                '/Filter': Name.DCTDecode,
            })
            img_stream = Stream(self.pdf, image.data, image_dict)
        else:
            # Raw 8-bit samples with FlateDecode (zlib compression)
            pil_img = image.to_pil().convert("RGB" if image.is_color else "L")
            compressed_data = zlib.compress(pil_img.tobytes(), level=9)

            image_dict = Dictionary({
                '/Type': Name.XObject,
                '/Subtype': Name.Image,
                '/Width': pil_img.width,
                '/Height': pil_img.height,
                '/ColorSpace': colorspace,
                '/BitsPerComponent': 8,
                '/Filter': Name.FlateDecode,
            })
            img_stream = Stream(self.pdf, compressed_data, image_dict)

        return self.pdf.make_indirect(img_stream)

    def draw_image(
        self,
        page: pikepdf.Page,
        image_ref: pikepdf.Object,
        x: float,
        y: float,
        width: float,
        height: float
    ):
        """Draw an embedded image on a page, scaled to width x height points."""
        page_dict = page.obj
        if '/Resources' not in page_dict:
            page_dict.Resources = Dictionary({})
        resources = page_dict.Resources
        if '/XObject' not in resources:
            resources.XObject = Dictionary({})

        name = f"/Im{len(resources.XObject.keys())}"
        resources.XObject[name] = image_ref

        content = f"""
q
{width:.4f} 0 0 {height:.4f} {x:.4f} {y:.4f} cm
{name} Do
Q
""".strip().encode("latin-1")
        content_stream = self.pdf.make_indirect(Stream(self.pdf, content))

        if '/Contents' in page_dict:
            page.contents_add(content_stream, prepend=False)
        else:
            page_dict.Contents = content_stream

    def add_page(self, compressed: CompressedPage):
        """Append a page filled edge to edge with its image."""
        page = self.append_page(compressed.page_width_pts, compressed.page_height_pts)
        image_ref = self.embed_image(compressed.image)
        self.draw_image(
            page,
            image_ref,
            0,
            0,
            compressed.page_width_pts,
            compressed.page_height_pts
        )
        self.page_count += 1

        mode = "color" if compressed.image.is_color else "gray"
        logger.debug(
            f"Added page {compressed.page_num}: "
            f"{compressed.total_size:,} bytes ({mode})"
        )

    def serialize(self) -> bytes:
        """Serialize the assembled PDF to bytes."""
        buffer = io.BytesIO()
        self.pdf.save(
            buffer,
            compress_streams=True,
            object_stream_mode=pikepdf.ObjectStreamMode.generate
        )
        data = buffer.getvalue()
        logger.debug(f"Serialized {self.page_count} pages: {len(data):,} bytes")
        return data

    def close(self):
        self.pdf.close()
