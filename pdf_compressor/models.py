"""
models.py - Shared types for the adaptive compressor.

Configs and profiles are immutable and created per call.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from PIL import Image

# 1.0 scale renders at the PDF default of 72 DPI
POINTS_PER_INCH = 72


def projected_dpi(scale: float) -> int:
    """Effective resolution of a page rasterized at `scale`."""
    return round(scale * POINTS_PER_INCH)


class CompressionLevel(Enum):
    """Coarse presets, from most to least aggressive."""
    EXTREME = "extreme"
    RECOMMENDED = "recommended"
    LESS = "less"

    @classmethod
    def parse(cls, value) -> "CompressionLevel":
        """Accept a level, its name or its value (case-insensitive)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for level in cls:
            if text in (level.value, level.name.lower()):
                return level
        raise ValueError(f"Unknown compression level: {value!r}")


class CompressionStatus(Enum):
    SUCCESS = "success"
    BLOCKED = "blocked"
    ERROR = "error"


class Strategy:
    """Labels reported in CompressionMeta.strategy_used."""
    FIRST_PASS = "First Pass"
    ADAPTIVE_FALLBACK = "Adaptive Fallback"
    ADAPTIVE_SQUEEZE = "Adaptive Squeeze"
    PASS2_UNSAFE = "Pass 2 Unsafe (Skipped)"
    NO_REDUCTION = "No Reduction Possible"
    ABORTED = "Aborted (No Reduction)"
    SAFETY_BLOCK = "Safety Block"
    FAILED = "Failed"

    # Outcomes whose payload is the untouched original
    UNCHANGED = frozenset({PASS2_UNSAFE, NO_REDUCTION, ABORTED})


@dataclass(frozen=True)
class ContentProfile:
    """Text density classification of a document."""
    is_text_heavy: bool = False
    page_count: int = 0


@dataclass(frozen=True)
class AdaptiveConfig:
    """
    Raster scale and JPEG quality for one pass.

    `projected_dpi` is always derived from `scale`; use `from_scale`
    rather than passing it by hand.
    """
    scale: float
    quality: float
    projected_dpi: int

    def __post_init__(self):
        if not self.scale > 0:
            raise ValueError(f"scale must be > 0, got {self.scale}")
        if not 0 < self.quality <= 1:
            raise ValueError(f"quality must be in (0, 1], got {self.quality}")
        if self.projected_dpi != projected_dpi(self.scale):
            raise ValueError(
                f"projected_dpi {self.projected_dpi} does not match "
                f"scale {self.scale} ({projected_dpi(self.scale)} DPI)"
            )

    @classmethod
    def from_scale(cls, scale: float, quality: float) -> "AdaptiveConfig":
        scale = round(scale, 2)
        quality = round(quality, 2)
        return cls(scale=scale, quality=quality, projected_dpi=projected_dpi(scale))

    @property
    def jpeg_quality(self) -> int:
        """Quality on Pillow's 1-100 JPEG scale."""
        return max(1, min(100, round(self.quality * 100)))


@dataclass
class CompressionMeta:
    original_size: int
    compressed_size: int
    effective_scale: float
    effective_quality: float
    iterations: int
    strategy_used: str
    projected_dpi: int


@dataclass
class CompressionResult:
    """Outcome of compress(); `status` tells which fields are meaningful."""
    data: bytes
    status: CompressionStatus
    meta: CompressionMeta
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is CompressionStatus.SUCCESS

    @property
    def blocked(self) -> bool:
        return self.status is CompressionStatus.BLOCKED

    @property
    def failed(self) -> bool:
        return self.status is CompressionStatus.ERROR

    @property
    def unchanged(self) -> bool:
        """True when the payload is the original document."""
        return self.ok and self.meta.strategy_used in Strategy.UNCHANGED

    @property
    def reduction_pct(self) -> float:
        if self.meta.original_size == 0 or not self.ok:
            return 0
        return (1 - self.meta.compressed_size / self.meta.original_size) * 100

    def summary(self) -> str:
        m = self.meta
        if self.blocked:
            return (
                f"Blocked: projected {m.projected_dpi} DPI is below the safety floor\n"
                f"Original: {m.original_size:,} bytes"
            )
        if self.failed:
            return f"Error: {self.error}"
        return (
            f"Original:   {m.original_size:,} bytes\n"
            f"Compressed: {m.compressed_size:,} bytes\n"
            f"Reduction:  {self.reduction_pct:.1f}%\n"
            f"Strategy:   {m.strategy_used} ({m.iterations} pass(es))\n"
            f"Scale: {m.effective_scale:.2f} | Quality: {m.effective_quality:.2f} | "
            f"{m.projected_dpi} DPI"
        )


@dataclass
class PreviewMetrics:
    original_bytes: int
    compressed_bytes: int
    estimated_total_size: int
    page_count: int
    config: AdaptiveConfig
    original_size: int = 0

    @property
    def ratio(self) -> float:
        if self.original_size == 0:
            return 1.0
        return self.estimated_total_size / self.original_size


@dataclass
class PreviewPair:
    """Page 1 rendered at original fidelity and at a candidate config."""
    original: Image.Image
    compressed: Image.Image
    metrics: PreviewMetrics = field(repr=False)
