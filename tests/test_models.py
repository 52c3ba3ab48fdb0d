import pytest

from pdf_compressor.models import (
    AdaptiveConfig,
    CompressionLevel,
    CompressionMeta,
    CompressionResult,
    CompressionStatus,
    Strategy,
)


def test_config_from_scale_derives_dpi():
    config = AdaptiveConfig.from_scale(1.2345, 0.6789)
    assert config.scale == 1.23
    assert config.quality == 0.68
    assert config.projected_dpi == round(1.23 * 72)
    assert config.jpeg_quality == 68


@pytest.mark.parametrize("scale,quality", [(0, 0.5), (-1, 0.5), (1.0, 0), (1.0, 1.5)])
def test_config_rejects_out_of_range(scale, quality):
    with pytest.raises(ValueError):
        AdaptiveConfig(scale=scale, quality=quality, projected_dpi=round(scale * 72))


def test_config_rejects_inconsistent_dpi():
    with pytest.raises(ValueError):
        AdaptiveConfig(scale=1.0, quality=0.5, projected_dpi=150)


@pytest.mark.parametrize("text", ["extreme", "EXTREME", " Recommended ", "less"])
def test_level_parse(text):
    assert isinstance(CompressionLevel.parse(text), CompressionLevel)


def test_level_parse_rejects_unknown():
    with pytest.raises(ValueError):
        CompressionLevel.parse("ultra")


def _result(status, size, strategy):
    return CompressionResult(
        data=b"x" * size,
        status=status,
        meta=CompressionMeta(
            original_size=1000,
            compressed_size=size,
            effective_scale=1.0,
            effective_quality=0.5,
            iterations=1,
            strategy_used=strategy,
            projected_dpi=72
        )
    )


def test_result_helpers():
    ok = _result(CompressionStatus.SUCCESS, 250, Strategy.FIRST_PASS)
    assert ok.ok and not ok.blocked and not ok.failed
    assert ok.reduction_pct == pytest.approx(75.0)
    assert not ok.unchanged
    assert "75.0%" in ok.summary()

    same = _result(CompressionStatus.SUCCESS, 1000, Strategy.NO_REDUCTION)
    assert same.unchanged
    assert same.reduction_pct == 0

    blocked = _result(CompressionStatus.BLOCKED, 0, Strategy.SAFETY_BLOCK)
    assert blocked.blocked
    assert blocked.reduction_pct == 0
    assert "72 DPI" in blocked.summary()
