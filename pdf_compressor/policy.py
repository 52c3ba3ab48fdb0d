"""
policy.py - Config resolution and the legibility safety gate.

Maps a preset level or a 0-100 slider value to a concrete
{scale, quality} config, and decides whether a config is legible enough
to be worth rasterizing. Everything here is pure and synchronous.

Numbers live in CompressionPolicy so they can be tuned in one place.
"""

import logging
from dataclasses import dataclass, field, replace, asdict
from typing import Dict, Tuple, Union

from .models import AdaptiveConfig, CompressionLevel, projected_dpi

logger = logging.getLogger(__name__)

# Below this many DPI a rasterized page is considered illegible
MIN_SAFE_DPI = 90

# (scale, quality) per preset, most aggressive first
LEVEL_BANDS = {
    CompressionLevel.EXTREME: (0.8, 0.4),
    CompressionLevel.RECOMMENDED: (1.4, 0.6),
    CompressionLevel.LESS: (2.0, 0.8),
}

# Fraction of the original size each preset is expected to remove,
# as (image-heavy, text-heavy)
TARGET_REDUCTIONS = {
    CompressionLevel.EXTREME: (0.60, 0.40),
    CompressionLevel.RECOMMENDED: (0.35, 0.20),
    CompressionLevel.LESS: (0.15, 0.15),
}


@dataclass(frozen=True)
class CompressionPolicy:
    """Tunable policy table shared by resolver, gate, orchestrator and estimator."""

    level_bands: Dict[CompressionLevel, Tuple[float, float]] = field(
        default_factory=lambda: dict(LEVEL_BANDS)
    )
    target_reductions: Dict[CompressionLevel, Tuple[float, float]] = field(
        default_factory=lambda: dict(TARGET_REDUCTIONS)
    )

    # Text-heavy documents: level scale damped x0.9 and quality lowered by
    # 0.1; slider scale damped x0.9 only
    text_heavy_scale_factor: float = 0.9
    text_heavy_quality_delta: float = 0.1
    slider_text_heavy_scale_factor: float = 0.9

    slider_min_scale: float = 0.6
    slider_max_scale: float = 2.0
    slider_min_quality: float = 0.3
    slider_max_quality: float = 0.9

    min_safe_dpi: int = MIN_SAFE_DPI

    # Pass 2 (fallback) and squeeze pass
    escalation_scale_factor: float = 0.7
    escalation_quality_delta: float = 0.2
    min_scale: float = 0.25
    min_quality: float = 0.3
    squeeze_threshold: float = 0.8
    squeeze_scale_factor: float = 0.8

    # Content analysis
    analysis_sample_pages: int = 3
    text_heavy_fragment_threshold: float = 20

    # Size estimation
    page_overhead_bytes: int = 2048
    document_overhead_bytes: int = 5120
    estimate_margin: float = 1.05
    preview_original_scale: float = 1.5
    preview_original_quality: float = 0.9

    # Readability labels and preview prompting
    good_dpi: int = 120
    fair_dpi: int = 100

    def __post_init__(self):
        """Validate the table; resolved configs must stay strictly ordered."""
        missing = set(CompressionLevel) - set(self.level_bands)
        if missing:
            raise ValueError(f"level_bands missing: {sorted(m.value for m in missing)}")
        for name in (
            "text_heavy_scale_factor",
            "slider_text_heavy_scale_factor",
            "escalation_scale_factor",
            "squeeze_scale_factor",
            "squeeze_threshold",
        ):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if not 0 < self.min_quality <= 1:
            raise ValueError(f"min_quality must be in (0, 1], got {self.min_quality}")
        if not 0 < self.slider_min_scale < self.slider_max_scale:
            raise ValueError("slider scale bounds must satisfy 0 < min < max")
        if not 0 < self.slider_min_quality < self.slider_max_quality <= 1:
            raise ValueError("slider quality bounds must satisfy 0 < min < max <= 1")
        if self.min_scale <= 0:
            raise ValueError(f"min_scale must be > 0, got {self.min_scale}")

        order = [CompressionLevel.EXTREME, CompressionLevel.RECOMMENDED, CompressionLevel.LESS]
        for heavy in (False, True):
            configs = [self._band_config(level, heavy) for level in order]
            for lower, upper in zip(configs, configs[1:]):
                if not (
                    lower.scale < upper.scale
                    and lower.quality < upper.quality
                    and lower.projected_dpi < upper.projected_dpi
                ):
                    raise ValueError(
                        f"level bands must be strictly ordered (text_heavy={heavy}): "
                        f"{lower} !< {upper}"
                    )

    def _band_config(self, level: CompressionLevel, is_text_heavy: bool) -> AdaptiveConfig:
        scale, quality = self.level_bands[level]
        if is_text_heavy:
            scale *= self.text_heavy_scale_factor
            quality = max(self.min_quality, quality - self.text_heavy_quality_delta)
        return AdaptiveConfig.from_scale(scale, quality)

    @classmethod
    def from_dict(cls, data: dict) -> "CompressionPolicy":
        """Build a policy from plain values; level keys may be strings."""
        data = dict(data)
        for key in ("level_bands", "target_reductions"):
            if key in data:
                data[key] = {
                    CompressionLevel.parse(level): tuple(pair)
                    for level, pair in data[key].items()
                }
        return cls(**data)

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("level_bands", "target_reductions"):
            data[key] = {level.value: list(pair) for level, pair in data[key].items()}
        return data

    def with_overrides(self, **changes) -> "CompressionPolicy":
        return replace(self, **changes)


DEFAULT_POLICY = CompressionPolicy()


@dataclass(frozen=True)
class SafetyVerdict:
    """Result of the safety gate. Falsy when the config is blocked."""
    allowed: bool
    projected_dpi: int
    threshold: int

    def __bool__(self) -> bool:
        return self.allowed


def resolve_level(
    level: Union[CompressionLevel, str],
    is_text_heavy: bool,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> AdaptiveConfig:
    """
    Resolve a preset level to a config.

    Text-heavy documents get their scale damped and quality lowered a notch
    so strokes survive anti-aliasing at the reduced resolution.
    """
    return policy._band_config(CompressionLevel.parse(level), is_text_heavy)


def resolve_slider(
    value: float,
    is_text_heavy: bool,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> AdaptiveConfig:
    """
    Resolve a 0-100 slider value to a config.

    Scale and quality are interpolated independently; the DPI is always
    recomputed from the resulting scale.
    """
    t = max(0.0, min(100.0, float(value))) / 100
    scale = policy.slider_min_scale + (policy.slider_max_scale - policy.slider_min_scale) * t
    quality = policy.slider_min_quality + (policy.slider_max_quality - policy.slider_min_quality) * t
    if is_text_heavy:
        scale *= policy.slider_text_heavy_scale_factor
    return AdaptiveConfig.from_scale(scale, quality)


def resolve_config(
    level_or_value: Union[CompressionLevel, str, int, float],
    is_text_heavy: bool,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> AdaptiveConfig:
    """Dispatch to resolve_level or resolve_slider depending on the input type."""
    if isinstance(level_or_value, bool):
        raise TypeError("expected a compression level or a slider value, got bool")
    if isinstance(level_or_value, (int, float)):
        return resolve_slider(level_or_value, is_text_heavy, policy)
    return resolve_level(level_or_value, is_text_heavy, policy)


def check_safety(
    config: AdaptiveConfig,
    override_safety: bool = False,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> SafetyVerdict:
    """Block configs whose projected DPI is below the legibility floor."""
    allowed = override_safety or config.projected_dpi >= policy.min_safe_dpi
    if not allowed:
        logger.debug(
            f"Safety gate: {config.projected_dpi} DPI < {policy.min_safe_dpi} DPI floor"
        )
    return SafetyVerdict(
        allowed=allowed,
        projected_dpi=config.projected_dpi,
        threshold=policy.min_safe_dpi
    )


def escalate_config(
    config: AdaptiveConfig,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> AdaptiveConfig:
    """More aggressive config for the fallback pass."""
    scale = max(policy.min_scale, config.scale * policy.escalation_scale_factor)
    quality = max(policy.min_quality, config.quality - policy.escalation_quality_delta)
    return AdaptiveConfig.from_scale(scale, quality)


def squeeze_config(
    config: AdaptiveConfig,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> AdaptiveConfig:
    """Lower scale, same quality."""
    scale = max(policy.min_scale, config.scale * policy.squeeze_scale_factor)
    return AdaptiveConfig.from_scale(scale, config.quality)


def slider_from_dpi(dpi: int, policy: CompressionPolicy = DEFAULT_POLICY) -> int:
    """Approximate slider position that yields `dpi` (image-heavy mapping)."""
    low = projected_dpi(policy.slider_min_scale)
    high = projected_dpi(policy.slider_max_scale)
    position = (dpi - low) / (high - low) * 100
    return round(max(0.0, min(100.0, position)))


def readability_label(dpi: int, policy: CompressionPolicy = DEFAULT_POLICY) -> str:
    if dpi >= policy.good_dpi:
        return "Good"
    if dpi >= policy.fair_dpi:
        return "Fair"
    return "Poor"


def preview_recommended(
    config: AdaptiveConfig,
    level: Union[CompressionLevel, str, None] = None,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> bool:
    """Whether the caller should show a readability preview before compressing."""
    if level is not None and CompressionLevel.parse(level) is CompressionLevel.EXTREME:
        return True
    return config.projected_dpi < policy.fair_dpi
