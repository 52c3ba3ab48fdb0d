"""
preview.py - Cheap size estimation and readability previews.

Only page 1 is rendered; the whole-document size is extrapolated from it.
Estimates are advisory: the orchestrator computes the real size on its own
and may diverge.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Optional, Union

from .compression import JPEG
from .engine import DEFAULT_ENGINE, PageEngine
from .errors import EmptyDocumentError
from .models import AdaptiveConfig, CompressionLevel, PreviewMetrics, PreviewPair
from .policy import CompressionPolicy, DEFAULT_POLICY, resolve_slider, slider_from_dpi

logger = logging.getLogger(__name__)

# Debounce window for slider-driven re-estimation, in seconds
DEBOUNCE_SECONDS = 0.2


def estimate_target_size(
    original_size: int,
    level: Union[CompressionLevel, str],
    is_text_heavy: bool,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> int:
    """Coarse table-driven target size for a preset. No rendering."""
    image_heavy, text_heavy = policy.target_reductions[CompressionLevel.parse(level)]
    reduction = text_heavy if is_text_heavy else image_heavy
    target = math.floor(original_size * (1 - reduction))
    return max(0, min(target, original_size))


def project_file_size(
    per_page_bytes: int,
    page_count: int,
    original_size: int,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> int:
    """
    Extrapolate a whole-document size from one encoded page.

    Adds per-page and per-document container overhead plus a safety
    margin; the result is clamped to [0, original_size].
    """
    estimate = (
        per_page_bytes * page_count
        + page_count * policy.page_overhead_bytes
        + policy.document_overhead_bytes
    )
    if estimate >= original_size:
        return max(0, original_size)
    return max(0, min(math.floor(estimate * policy.estimate_margin), original_size))


async def preview_pair(
    doc,
    config: AdaptiveConfig,
    engine: Optional[PageEngine] = None,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> PreviewPair:
    """
    Render page 1 at original fidelity and at `config`.

    Both views are JPEG-encoded and decoded again so the compressed image
    shows the real codec artifacts. Adapter failures propagate.
    """
    engine = engine or DEFAULT_ENGINE
    page_count = engine.page_count(doc)
    if page_count == 0:
        raise EmptyDocumentError("Cannot preview a document with no pages")

    rendered = await asyncio.to_thread(
        engine.render_page, doc, 0, policy.preview_original_scale
    )
    original = await asyncio.to_thread(
        engine.encode_bitmap, rendered.image, JPEG, policy.preview_original_quality
    )
    del rendered

    rendered = await asyncio.to_thread(engine.render_page, doc, 0, config.scale)
    compressed = await asyncio.to_thread(
        engine.encode_bitmap, rendered.image, JPEG, config.quality
    )
    del rendered

    original_size = len(doc.data)
    estimated = project_file_size(compressed.total_size, page_count, original_size, policy)
    logger.debug(
        f"Preview @ {config.projected_dpi} DPI q={config.quality:.2f}: "
        f"page 1 {compressed.total_size:,} bytes, estimated total {estimated:,} bytes"
    )

    return PreviewPair(
        original=original.to_pil(),
        compressed=compressed.to_pil(),
        metrics=PreviewMetrics(
            original_bytes=original.total_size,
            compressed_bytes=compressed.total_size,
            estimated_total_size=estimated,
            page_count=page_count,
            config=config,
            original_size=original_size
        )
    )


@dataclass(frozen=True)
class SizeEstimate:
    estimated_size: int
    ratio: float
    confidence: str  # "high" once verified for the current config, else "low"


class PreviewSession:
    """
    Debounced re-estimation while a caller drags a quality slider.

    `update()` resolves the new config immediately and schedules a preview
    run after the debounce window, cancelling any run still pending. Until
    it completes, `estimate` reports the last verified size with low
    confidence. Renders never overlap: a cancelled run still holds the
    document until its worker thread returns. Must be used from a running
    event loop.
    """

    def __init__(
        self,
        doc,
        is_text_heavy: bool,
        initial_config: Optional[AdaptiveConfig] = None,
        engine: Optional[PageEngine] = None,
        policy: CompressionPolicy = DEFAULT_POLICY,
        debounce: float = DEBOUNCE_SECONDS
    ):
        self.doc = doc
        self.is_text_heavy = is_text_heavy
        self.engine = engine or DEFAULT_ENGINE
        self.policy = policy
        self.debounce = debounce

        if initial_config is not None:
            self.slider_value = slider_from_dpi(initial_config.projected_dpi, policy)
            self.config = initial_config
        else:
            self.slider_value = 50
            self.config = resolve_slider(self.slider_value, is_text_heavy, policy)

        self.latest: Optional[PreviewPair] = None
        self._verified_config: Optional[AdaptiveConfig] = None
        self._pending: Optional[asyncio.Task] = None
        # One render at a time on the shared document
        self._render_lock = asyncio.Lock()

    @property
    def stale(self) -> bool:
        return self._verified_config != self.config

    @property
    def estimate(self) -> Optional[SizeEstimate]:
        if self.latest is None:
            return None
        metrics = self.latest.metrics
        return SizeEstimate(
            estimated_size=metrics.estimated_total_size,
            ratio=metrics.ratio,
            confidence="low" if self.stale else "high"
        )

    def update(self, value: float) -> AdaptiveConfig:
        """Move the slider; returns the new config without rendering."""
        self.slider_value = value
        self.config = resolve_slider(value, self.is_text_heavy, self.policy)
        self._schedule(self.config, self.debounce)
        return self.config

    async def refresh(self) -> PreviewPair:
        """Run a preview for the current config right away."""
        self._schedule(self.config, 0)
        return await self.wait()

    async def wait(self) -> Optional[PreviewPair]:
        """Wait for the pending preview (following supersedes) and return the latest."""
        while self._pending is not None:
            task = self._pending
            await asyncio.wait({task})
            if task is self._pending:
                self._pending = None
                if not task.cancelled():
                    task.result()  # re-raise a failed preview
        return self.latest

    def cancel(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _schedule(self, config: AdaptiveConfig, delay: float):
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.ensure_future(self._run(config, delay))

    async def _run(self, config: AdaptiveConfig, delay: float) -> PreviewPair:
        if delay > 0:
            await asyncio.sleep(delay)
        async with self._render_lock:
            render = asyncio.ensure_future(
                preview_pair(self.doc, config, self.engine, self.policy)
            )
            try:
                pair = await asyncio.shield(render)
            except asyncio.CancelledError:
                # A worker thread cannot be interrupted: keep the document
                # locked until the render in flight has returned
                await asyncio.wait({render})
                if not render.cancelled():
                    render.exception()
                raise
        if config == self.config:
            self.latest = pair
            self._verified_config = config
        return pair
