import pytest

from pdf_compressor.models import AdaptiveConfig, CompressionLevel
from pdf_compressor.policy import (
    DEFAULT_POLICY,
    CompressionPolicy,
    check_safety,
    escalate_config,
    preview_recommended,
    readability_label,
    resolve_config,
    resolve_level,
    resolve_slider,
    slider_from_dpi,
    squeeze_config,
)

ORDER = [CompressionLevel.EXTREME, CompressionLevel.RECOMMENDED, CompressionLevel.LESS]


@pytest.mark.parametrize("heavy", [False, True])
def test_levels_are_strictly_ordered(heavy):
    configs = [resolve_level(level, heavy) for level in ORDER]
    for lower, upper in zip(configs, configs[1:]):
        assert lower.scale < upper.scale
        assert lower.quality < upper.quality
        assert lower.projected_dpi < upper.projected_dpi


@pytest.mark.parametrize("heavy", [False, True])
@pytest.mark.parametrize("level", ORDER)
def test_level_dpi_is_derived_from_scale(level, heavy):
    config = resolve_level(level, heavy)
    assert config.projected_dpi == round(config.scale * 72)
    assert config.scale > 0
    assert 0 < config.quality <= 1


def test_level_table_values():
    assert resolve_level("extreme", False) == AdaptiveConfig(0.8, 0.4, 58)
    assert resolve_level("recommended", False) == AdaptiveConfig(1.4, 0.6, 101)
    assert resolve_level("less", False) == AdaptiveConfig(2.0, 0.8, 144)


def test_text_heavy_damps_scale_and_quality():
    for level in ORDER:
        plain = resolve_level(level, False)
        heavy = resolve_level(level, True)
        assert heavy.scale < plain.scale
        assert heavy.quality < plain.quality
    assert resolve_level(CompressionLevel.RECOMMENDED, True) == AdaptiveConfig(1.26, 0.5, 91)
    assert resolve_level(CompressionLevel.EXTREME, True) == AdaptiveConfig(0.72, 0.3, 52)


def test_resolver_is_pure():
    first = resolve_level(CompressionLevel.RECOMMENDED, True)
    second = resolve_level(CompressionLevel.RECOMMENDED, True)
    assert first == second
    assert (first.scale, first.quality, first.projected_dpi) == (
        second.scale, second.quality, second.projected_dpi
    )


def test_slider_bounds_are_exact():
    low = resolve_slider(0, False)
    high = resolve_slider(100, False)
    assert (low.scale, low.quality, low.projected_dpi) == (0.6, 0.3, 43)
    assert (high.scale, high.quality, high.projected_dpi) == (2.0, 0.9, 144)


def test_slider_interpolates_and_clamps():
    mid = resolve_slider(50, False)
    assert mid.scale == 1.3
    assert mid.quality == 0.6
    assert mid.projected_dpi == round(1.3 * 72)
    assert resolve_slider(-20, False) == resolve_slider(0, False)
    assert resolve_slider(250, False) == resolve_slider(100, False)


def test_slider_text_heavy_damps_scale_only():
    plain = resolve_slider(100, False)
    heavy = resolve_slider(100, True)
    assert heavy.scale == 1.8
    assert heavy.quality == plain.quality
    assert heavy.projected_dpi == round(heavy.scale * 72)


def test_slider_is_monotonic():
    configs = [resolve_slider(v, False) for v in range(0, 101, 5)]
    for lower, upper in zip(configs, configs[1:]):
        assert lower.scale <= upper.scale
        assert lower.quality <= upper.quality
        assert lower.projected_dpi <= upper.projected_dpi


def test_resolve_config_dispatches_on_type():
    assert resolve_config("less", False) == resolve_level(CompressionLevel.LESS, False)
    assert resolve_config(CompressionLevel.EXTREME, True) == resolve_level("extreme", True)
    assert resolve_config(30, False) == resolve_slider(30, False)
    assert resolve_config(30.0, True) == resolve_slider(30, True)
    with pytest.raises(TypeError):
        resolve_config(True, False)
    with pytest.raises(ValueError):
        resolve_config("maximum", False)


@pytest.mark.parametrize("scale", [0.5, 1.0, 1.24, 1.25, 1.26, 2.0])
def test_safety_gate_blocks_below_floor(scale):
    config = AdaptiveConfig.from_scale(scale, 0.5)
    verdict = check_safety(config, override_safety=False)
    assert bool(verdict) == (config.projected_dpi >= 90)
    assert verdict.projected_dpi == config.projected_dpi
    assert verdict.threshold == 90
    assert check_safety(config, override_safety=True).allowed


def test_safety_gate_boundary():
    assert check_safety(AdaptiveConfig.from_scale(1.25, 0.5)).allowed  # 90 DPI
    assert not check_safety(AdaptiveConfig.from_scale(1.24, 0.5)).allowed  # 89 DPI


def test_safety_gate_uses_policy_floor():
    strict = DEFAULT_POLICY.with_overrides(min_safe_dpi=120)
    config = resolve_level(CompressionLevel.RECOMMENDED, False)
    assert check_safety(config)
    assert not check_safety(config, policy=strict)


def test_escalation_is_more_aggressive_and_floored():
    config = resolve_level(CompressionLevel.LESS, False)
    aggressive = escalate_config(config)
    assert aggressive.scale == 1.4
    assert aggressive.quality == 0.6
    assert aggressive.projected_dpi == 101

    floor = escalate_config(AdaptiveConfig.from_scale(0.3, 0.35))
    assert floor.quality == DEFAULT_POLICY.min_quality
    assert floor.scale == DEFAULT_POLICY.min_scale


def test_squeeze_keeps_quality():
    config = AdaptiveConfig.from_scale(2.0, 0.4)
    squeezed = squeeze_config(config)
    assert squeezed.scale == 1.6
    assert squeezed.quality == 0.4


def test_slider_from_dpi_round_trips_bounds():
    assert slider_from_dpi(43) == 0
    assert slider_from_dpi(144) == 100
    assert slider_from_dpi(10) == 0
    assert slider_from_dpi(300) == 100
    assert 50 <= slider_from_dpi(resolve_slider(55, False).projected_dpi) <= 60


def test_readability_labels():
    assert readability_label(144) == "Good"
    assert readability_label(120) == "Good"
    assert readability_label(101) == "Fair"
    assert readability_label(99) == "Poor"


def test_preview_recommended():
    recommended = resolve_level("recommended", False)
    assert not preview_recommended(recommended, "recommended")
    assert preview_recommended(resolve_level("less", False), "extreme")
    assert preview_recommended(resolve_level("recommended", True))


def test_policy_rejects_unordered_bands():
    bands = dict(DEFAULT_POLICY.level_bands)
    bands[CompressionLevel.RECOMMENDED] = (0.7, 0.6)
    with pytest.raises(ValueError):
        CompressionPolicy(level_bands=bands)


def test_policy_rejects_bad_factors():
    with pytest.raises(ValueError):
        CompressionPolicy(escalation_scale_factor=1.5)
    with pytest.raises(ValueError):
        CompressionPolicy(slider_min_scale=2.0, slider_max_scale=1.0)


def test_policy_dict_round_trip():
    data = DEFAULT_POLICY.to_dict()
    assert data["level_bands"]["extreme"] == [0.8, 0.4]
    data["min_safe_dpi"] = 100
    policy = CompressionPolicy.from_dict(data)
    assert policy.min_safe_dpi == 100
    assert policy.level_bands[CompressionLevel.LESS] == (2.0, 0.8)
