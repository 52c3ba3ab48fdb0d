"""
compression.py - Page bitmap encoding.

Supports:
- JPEG (DCTDecode) for color/grayscale pages, the default
- PNG for lossless previews
"""

import io
import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image
import cv2

logger = logging.getLogger(__name__)

JPEG = "image/jpeg"
PNG = "image/png"

# Saturation threshold for grayscale conversion
# Only convert to grayscale if mean saturation is below this
GRAYSCALE_SATURATION_THRESHOLD = 10  # Out of 255


@dataclass
class EncodedImage:
    """Encoded bitmap ready for PDF embedding."""
    data: bytes
    width: int
    height: int
    is_color: bool
    mime_type: str = JPEG

    @property
    def total_size(self) -> int:
        return len(self.data)

    def to_pil(self) -> Image.Image:
        """Decode back to a PIL image, codec artifacts included."""
        img = Image.open(io.BytesIO(self.data))
        img.load()
        return img


def is_grayscale_image(image: np.ndarray) -> bool:
    """
    Check if image is effectively grayscale based on saturation.

    Only returns True if the entire page has very low saturation.
    """
    if len(image.shape) != 3 or image.shape[2] == 1:
        return True  # Already grayscale
    if image.shape[2] == 4:
        image = np.ascontiguousarray(image[:, :, :3])

    hsv = cv2.cvtColor(image, cv2.COLOR_RGB2HSV)
    mean_saturation = np.mean(hsv[:, :, 1])

    is_gray = mean_saturation < GRAYSCALE_SATURATION_THRESHOLD
    logger.debug(f"Mean saturation: {mean_saturation:.1f}, is_grayscale: {is_gray}")

    return is_gray


def to_pil(image: np.ndarray, keep_color: bool = True) -> Image.Image:
    """Wrap an RGB/gray array as a PIL image, dropping color when not needed."""
    if len(image.shape) == 2:
        return Image.fromarray(image)
    if image.shape[2] == 4:
        image = np.ascontiguousarray(image[:, :, :3])
    if not keep_color:
        gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
        return Image.fromarray(gray)
    return Image.fromarray(image)


def encode_bitmap(
    image: np.ndarray,
    mime_type: str = JPEG,
    quality: float = 0.7,
    detect_grayscale: bool = True
) -> EncodedImage:
    """
    Encode a rasterized page.

    Args:
        image: RGB or grayscale numpy array
        mime_type: image/jpeg or image/png
        quality: JPEG quality in (0, 1]; ignored for PNG
        detect_grayscale: Store effectively-gray pages as single channel

    Returns:
        EncodedImage with the encoded bytes
    """
    height, width = image.shape[:2]
    is_color = len(image.shape) == 3
    if is_color and detect_grayscale:
        is_color = not is_grayscale_image(image)

    img = to_pil(image, keep_color=is_color)
    buffer = io.BytesIO()

    if mime_type == JPEG:
        jpeg_quality = max(1, min(100, round(quality * 100)))
        img.save(
            buffer,
            format="JPEG",
            quality=jpeg_quality,
            optimize=True,
            subsampling=2  # 4:2:0 chroma subsampling
        )
    elif mime_type == PNG:
        img.save(buffer, format="PNG", optimize=True)
    else:
        raise ValueError(f"Unsupported mime type: {mime_type}")

    data = buffer.getvalue()
    logger.debug(
        f"Encoded {width}x{height} {mime_type}: {len(data):,} bytes | "
        f"color={is_color} | q={quality:.2f}"
    )

    return EncodedImage(
        data=data,
        width=width,
        height=height,
        is_color=is_color,
        mime_type=mime_type
    )
