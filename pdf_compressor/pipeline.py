"""
pipeline.py - Adaptive compression orchestrator.

Pipeline per pass:
1. Rasterize page at the pass scale
2. Encode as JPEG at the pass quality
3. Draw it back at the original page size in a new PDF

Passes are chained by the escalation ladder (see ladder.py). Pages are
processed sequentially so only one rendered bitmap is resident at a time;
the loop yields to the event loop after every page.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, Optional, Union

from .analysis import analyze_content
from .compression import JPEG
from .document import SourceDocument, open_document
from .engine import DEFAULT_ENGINE, PageEngine
from .errors import EmptyDocumentError, PageEncodeError, PageRenderError
from .ladder import LadderContext, LadderState, advance, progress_window, record_pass
from .models import (
    AdaptiveConfig,
    CompressionLevel,
    CompressionMeta,
    CompressionResult,
    CompressionStatus,
    ContentProfile,
    Strategy,
)
from .pdf_writer import CompressedPage
from .policy import CompressionPolicy, DEFAULT_POLICY, resolve_level

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


@dataclass
class ProgressEvent:
    """One step of a compression run. The last event carries the result."""
    percent: float
    pass_index: int
    page_num: Optional[int]
    page_count: int
    message: str
    result: Optional[CompressionResult] = None

    @property
    def done(self) -> bool:
        return self.result is not None


class CompressionRun:
    """
    Lazy stream of progress events for one compression request.

    Nothing is rendered until iteration starts. Iterating again starts a
    fresh run from the original document.

        run = CompressionRun(doc, CompressionLevel.RECOMMENDED)
        async for event in run:
            print(event.percent)
        result = run.result
    """

    def __init__(
        self,
        doc: SourceDocument,
        level: Union[CompressionLevel, str] = CompressionLevel.RECOMMENDED,
        override_safety: bool = False,
        custom_config: Optional[AdaptiveConfig] = None,
        engine: Optional[PageEngine] = None,
        policy: CompressionPolicy = DEFAULT_POLICY,
        profile: Optional[ContentProfile] = None
    ):
        self.doc = doc
        self.level = CompressionLevel.parse(level)
        self.override_safety = override_safety
        self.custom_config = custom_config
        self.engine = engine or DEFAULT_ENGINE
        self.policy = policy
        self.profile = profile
        self.result: Optional[CompressionResult] = None
        # Resolved primary config and ladder progress of the current run
        self.config: Optional[AdaptiveConfig] = None
        self.context: Optional[LadderContext] = None

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._run()

    def _resolve(self) -> AdaptiveConfig:
        if self.custom_config is not None:
            return self.custom_config
        profile = self.profile or analyze_content(self.doc, self.engine, self.policy)
        return resolve_level(self.level, profile.is_text_heavy, self.policy)

    def _process_page(self, page_num: int, config: AdaptiveConfig) -> CompressedPage:
        """Render and encode one page; any failure aborts the pass."""
        try:
            rendered = self.engine.render_page(self.doc, page_num, config.scale)
        except Exception as e:
            raise PageRenderError(page_num, str(e)) from e

        try:
            encoded = self.engine.encode_bitmap(rendered.image, JPEG, config.quality)
        except Exception as e:
            raise PageEncodeError(page_num, str(e)) from e

        compressed = CompressedPage(
            page_num=page_num,
            image=encoded,
            page_width_pts=rendered.page_width_pts,
            page_height_pts=rendered.page_height_pts
        )
        logger.debug(
            f"Page {page_num}: {rendered.pixel_width}x{rendered.pixel_height} px "
            f"q={config.quality:.2f} -> {encoded.total_size:,} bytes"
        )
        del rendered
        return compressed

    async def _run(self) -> AsyncIterator[ProgressEvent]:
        self.result = None
        self.config = None
        self.context = None
        original_size = len(self.doc.data)
        page_count = self.engine.page_count(self.doc)
        if page_count == 0:
            raise EmptyDocumentError(f"{getattr(self.doc, 'name', 'document')} has no pages")

        config = await asyncio.to_thread(self._resolve)
        self.config = config
        ctx = LadderContext(
            original_size=original_size,
            primary=config,
            level=self.level,
            custom=self.custom_config is not None,
            override_safety=self.override_safety,
            policy=self.policy
        )
        self.context = ctx
        logger.info(
            f"Compressing {page_count} pages, {original_size:,} bytes: "
            f"scale={config.scale:.2f} quality={config.quality:.2f} "
            f"({config.projected_dpi} DPI), level={self.level.value}, "
            f"custom={ctx.custom}"
        )

        candidates: Dict[int, bytes] = {}
        transition = advance(LadderState.INIT, ctx)

        while True:
            ctx = transition.context
            self.context = ctx
            if transition.run is not None:
                pass_index = ctx.iterations
                start, span = progress_window(pass_index)
                pass_config = transition.run
                logger.info(
                    f"Pass {pass_index + 1}: scale={pass_config.scale:.2f} "
                    f"quality={pass_config.quality:.2f} ({pass_config.projected_dpi} DPI)"
                )

                writer = self.engine.new_writer()
                try:
                    for page_num in range(page_count):
                        compressed = await asyncio.to_thread(
                            self._process_page, page_num, pass_config
                        )
                        writer.add_page(compressed)
                        del compressed
                        yield ProgressEvent(
                            percent=start + span * (page_num + 1) / page_count,
                            pass_index=pass_index,
                            page_num=page_num,
                            page_count=page_count,
                            message=f"Pass {pass_index + 1}: page {page_num + 1}/{page_count}"
                        )
                        await asyncio.sleep(0)
                    data = await asyncio.to_thread(writer.serialize)
                finally:
                    writer.close()

                logger.info(
                    f"Pass {pass_index + 1}: {len(data):,} bytes "
                    f"({len(data) / max(1, original_size) * 100:.1f}% of original)"
                )
                ctx = record_pass(ctx, pass_config, len(data))
                self.context = ctx
                candidates[pass_index] = data

            if transition.state is LadderState.FINAL:
                break

            transition = advance(transition.state, ctx)

            # Only the adopted candidate's bytes are kept
            best = transition.context.best
            for index in list(candidates):
                if best is None or index != best.index:
                    del candidates[index]

        self.result = self._build_result(ctx, candidates)
        yield ProgressEvent(
            percent=100.0,
            pass_index=max(0, ctx.iterations - 1),
            page_num=None,
            page_count=page_count,
            message=self.result.meta.strategy_used,
            result=self.result
        )

    def _build_result(self, ctx: LadderContext, candidates: Dict[int, bytes]) -> CompressionResult:
        original_size = ctx.original_size

        if ctx.blocked:
            logger.warning(
                f"Blocked: projected {ctx.primary.projected_dpi} DPI is below "
                f"the {self.policy.min_safe_dpi} DPI safety floor"
            )
            return CompressionResult(
                data=b"",
                status=CompressionStatus.BLOCKED,
                meta=CompressionMeta(
                    original_size=original_size,
                    compressed_size=0,
                    effective_scale=ctx.primary.scale,
                    effective_quality=ctx.primary.quality,
                    iterations=0,
                    strategy_used=Strategy.SAFETY_BLOCK,
                    projected_dpi=ctx.primary.projected_dpi
                )
            )

        if ctx.best is None:
            logger.info(f"{ctx.strategy}: keeping original {original_size:,} bytes")
            return CompressionResult(
                data=self.doc.data,
                status=CompressionStatus.SUCCESS,
                meta=CompressionMeta(
                    original_size=original_size,
                    compressed_size=original_size,
                    effective_scale=0.0,
                    effective_quality=0.0,
                    iterations=ctx.iterations,
                    strategy_used=ctx.strategy,
                    projected_dpi=ctx.primary.projected_dpi
                )
            )

        adopted = ctx.best.config
        data = candidates[ctx.best.index]
        result = CompressionResult(
            data=data,
            status=CompressionStatus.SUCCESS,
            meta=CompressionMeta(
                original_size=original_size,
                compressed_size=len(data),
                effective_scale=adopted.scale,
                effective_quality=adopted.quality,
                iterations=ctx.iterations,
                strategy_used=ctx.strategy,
                projected_dpi=adopted.projected_dpi
            )
        )
        logger.info(
            f"{ctx.strategy}: {original_size:,} -> {len(data):,} bytes "
            f"({result.reduction_pct:.1f}% smaller)"
        )
        return result


def _error_result(
    original_size: int,
    config: Optional[AdaptiveConfig],
    iterations: int,
    error: Exception
) -> CompressionResult:
    """ERROR result reporting the primary config and the passes completed before the failure."""
    return CompressionResult(
        data=b"",
        status=CompressionStatus.ERROR,
        meta=CompressionMeta(
            original_size=original_size,
            compressed_size=0,
            effective_scale=config.scale if config else 0.0,
            effective_quality=config.quality if config else 0.0,
            iterations=iterations,
            strategy_used=Strategy.FAILED,
            projected_dpi=config.projected_dpi if config else 0
        ),
        error=str(error)
    )


async def compress(
    doc: Union[SourceDocument, bytes, str, Path],
    level: Union[CompressionLevel, str] = CompressionLevel.RECOMMENDED,
    on_progress: Optional[ProgressCallback] = None,
    override_safety: bool = False,
    custom_config: Optional[AdaptiveConfig] = None,
    engine: Optional[PageEngine] = None,
    policy: CompressionPolicy = DEFAULT_POLICY,
    profile: Optional[ContentProfile] = None
) -> CompressionResult:
    """
    Compress a PDF by rasterizing every page, escalating when needed.

    Args:
        doc: SourceDocument, PDF bytes or a path
        level: Preset level (ignored for escalation when custom_config is set)
        on_progress: Optional callback(percent), monotonically non-decreasing
        override_safety: Allow configs below the legibility floor
        custom_config: Caller-chosen config, never silently overridden
        engine: Rendering/encoding/assembly adapters
        policy: Tunable policy table
        profile: Precomputed content profile, skips analysis

    Returns:
        CompressionResult; failures come back as status=ERROR, never raised
    """
    original_size = 0
    run = None
    try:
        with open_document(doc) as source:
            original_size = len(source.data)
            run = CompressionRun(
                source,
                level=level,
                override_safety=override_safety,
                custom_config=custom_config,
                engine=engine,
                policy=policy,
                profile=profile
            )
            async for event in run:
                if on_progress:
                    on_progress(int(event.percent))
            return run.result
    except Exception as e:
        logger.error(f"Compression failed: {e}")
        config = custom_config
        iterations = 0
        if run is not None and run.context is not None:
            config = run.config
            iterations = run.context.iterations
        return _error_result(original_size, config, iterations, e)


def compress_file(
    input_path: Path,
    output_path: Path,
    level: Union[CompressionLevel, str] = CompressionLevel.RECOMMENDED,
    on_progress: Optional[ProgressCallback] = None,
    override_safety: bool = False,
    custom_config: Optional[AdaptiveConfig] = None,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> CompressionResult:
    """Blocking wrapper: compress a file and write the payload on success."""
    result = asyncio.run(compress(
        Path(input_path),
        level=level,
        on_progress=on_progress,
        override_safety=override_safety,
        custom_config=custom_config,
        policy=policy
    ))
    if result.ok:
        Path(output_path).write_bytes(result.data)
        logger.info(f"Wrote {len(result.data):,} bytes to {output_path}")
    return result
