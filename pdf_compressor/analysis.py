"""
analysis.py - Text density classification.

Dense text needs more effective resolution to stay legible after
rasterization; image-dominant pages tolerate more downscaling.
"""

import logging
from typing import Optional

from .engine import DEFAULT_ENGINE, PageEngine
from .models import ContentProfile
from .policy import CompressionPolicy, DEFAULT_POLICY

logger = logging.getLogger(__name__)


def analyze_content(
    doc,
    engine: Optional[PageEngine] = None,
    policy: CompressionPolicy = DEFAULT_POLICY
) -> ContentProfile:
    """
    Classify a document as text-heavy or image-heavy.

    Samples at most the first few pages, counts text fragments per page and
    compares the average against the policy threshold. Extraction errors are
    logged and yield the default profile; callers can re-derive the page
    count on their own.
    """
    engine = engine or DEFAULT_ENGINE

    try:
        page_count = engine.page_count(doc)
        sampled = min(page_count, policy.analysis_sample_pages)
        if sampled == 0:
            return ContentProfile(is_text_heavy=False, page_count=page_count)

        total_fragments = 0
        for page_num in range(sampled):
            total_fragments += len(engine.page_text_fragments(doc, page_num))

        average = total_fragments / sampled
    except Exception as e:
        logger.warning(f"Content analysis failed: {e}")
        return ContentProfile()

    is_text_heavy = average > policy.text_heavy_fragment_threshold
    logger.info(
        f"Content analysis: {average:.1f} fragments/page over {sampled} page(s), "
        f"text_heavy={is_text_heavy}"
    )
    return ContentProfile(is_text_heavy=is_text_heavy, page_count=page_count)
