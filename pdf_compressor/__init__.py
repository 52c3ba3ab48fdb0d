"""
PDF Compressor - adaptive, size-targeted rasterization of PDF documents.

Picks a raster scale and JPEG quality from the document's text density,
re-encodes every page as an image, and escalates when the first pass does
not shrink the file. Includes a cheap page-1 preview for tuning quality
before the full re-encode.
"""

from .analysis import analyze_content
from .document import SourceDocument, open_document
from .errors import (
    CompressionError,
    DocumentOpenError,
    EmptyDocumentError,
    PageEncodeError,
    PageRenderError,
)
from .models import (
    AdaptiveConfig,
    CompressionLevel,
    CompressionMeta,
    CompressionResult,
    CompressionStatus,
    ContentProfile,
    PreviewPair,
    Strategy,
)
from .pipeline import CompressionRun, ProgressEvent, compress, compress_file
from .policy import (
    CompressionPolicy,
    DEFAULT_POLICY,
    check_safety,
    preview_recommended,
    readability_label,
    resolve_config,
    resolve_level,
    resolve_slider,
    slider_from_dpi,
)
from .preview import PreviewSession, estimate_target_size, preview_pair, project_file_size

__version__ = "1.0.0"
__author__ = "PDF Compressor"
