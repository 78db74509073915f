"""Tests for choropleth scales and route widths."""

import math

import pytest

from migration_map.scale import (
    DEFAULT_PALETTE,
    ColorScale,
    build_scale,
    color_for,
    line_width_for,
    repair_thresholds,
    sample_palette,
    to_magnitude,
    top_regions,
    value_range,
)


def _strictly_increasing(values):
    return all(upper > lower for lower, upper in zip(values, values[1:]))


@pytest.mark.parametrize("policy", ["quantile", "interpolate"])
def test_zero_gets_lowest_and_max_gets_highest_color(policy):
    totals = {"A": 0, "B": 100}
    scale = build_scale(totals.values(), policy=policy)

    assert color_for(totals["A"], scale) == scale.lowest_color
    assert color_for(totals["B"], scale) == scale.highest_color
    assert scale.lowest_color == DEFAULT_PALETTE[0]
    assert scale.highest_color == DEFAULT_PALETTE[-1]


@pytest.mark.parametrize("policy", ["quantile", "interpolate", "fixed"])
@pytest.mark.parametrize(
    "values",
    [
        [],
        [0],
        [0, 0, 0],
        [5, 5, 5],
        [0, 100],
        list(range(1, 101)),
        [1, 1, 1, 1, 2, 1000000],
        [0.5, 0.5, 7],
    ],
)
def test_thresholds_strictly_increase(policy, values):
    scale = build_scale(values, policy=policy)
    assert _strictly_increasing(scale.thresholds)
    assert len(scale.colors) == len(scale.thresholds)


def test_quantile_breaks_use_positive_values_only():
    scale = build_scale([0, 0, 0, 10, 20, 30, 40, 50], policy="quantile", classes=5)
    assert scale.thresholds[0] == 0.0
    assert scale.thresholds[1] == 10.0
    assert len(scale.thresholds) == 6


def test_interpolate_uses_min_mid_max():
    scale = build_scale([10, 25, 41], policy="interpolate")
    assert scale.thresholds == (10.0, 26.0, 41.0)
    assert scale.colors[0] == DEFAULT_PALETTE[0]
    assert scale.colors[-1] == DEFAULT_PALETTE[-1]


def test_fixed_breakpoints_are_repaired():
    scale = build_scale([1, 2, 3], policy="fixed", breakpoints=[0, 100, 50, 50])
    assert scale.thresholds[:2] == (0.0, 100.0)
    assert _strictly_increasing(scale.thresholds)


def test_repair_thresholds_uses_smallest_step():
    repaired = repair_thresholds([0, 0, 5, 3])
    assert repaired[0] == 0.0
    assert repaired[1] == math.nextafter(0.0, math.inf)
    assert repaired[2] == 5.0
    assert 5.0 < repaired[3] < 5.0 + 1e-9
    assert _strictly_increasing(repaired)


def test_unknown_policy_raises():
    with pytest.raises(ValueError):
        build_scale([1, 2], policy="jenks")


def test_color_scale_rejects_bad_thresholds():
    with pytest.raises(ValueError):
        ColorScale(thresholds=(0.0, 0.0), colors=("#000000", "#ffffff"))
    with pytest.raises(ValueError):
        ColorScale(thresholds=(0.0, 1.0), colors=("#000000",))


@pytest.mark.parametrize("value", [None, -5, float("nan"), "abc", 0, True])
def test_missing_and_non_positive_values_get_lowest_color(value):
    scale = build_scale([0, 10, 100])
    assert color_for(value, scale) == scale.lowest_color


def test_values_above_domain_are_clamped_to_highest_color():
    scale = build_scale([0, 10, 100], policy="interpolate")
    assert color_for(10**9, scale) == scale.highest_color
    assert color_for(50, scale) == scale.colors[1]
    assert color_for(49, scale) == scale.colors[0]


def test_sample_palette_accepts_colormap_names():
    colors = sample_palette("OrRd", 4)
    assert len(colors) == 4
    assert all(color.startswith("#") and len(color) == 7 for color in colors)


def test_line_width_interpolates_between_stops():
    assert line_width_for(0) == 1.5
    assert line_width_for(50000) == 3.5
    assert line_width_for(250000) == 9.0
    assert line_width_for(10**7) == 9.0
    assert 3.5 < line_width_for(85000) < 6.0
    assert line_width_for(None) == 1.5


def test_to_magnitude():
    assert to_magnitude("1200") == 1200.0
    assert to_magnitude(-3) == 0.0
    assert to_magnitude(float("inf")) == 0.0
    assert to_magnitude({}) == 0.0


def test_value_range_and_top_regions():
    totals = {"DE": 100, "FR": 300, "IT": 100, "AT": 0}

    assert value_range(totals) == {"min": 0.0, "mid": 150.0, "max": 300.0}
    assert value_range({}) == {"min": 0.0, "mid": 1.0, "max": 1.0}
    assert top_regions(totals, n=3) == [("FR", 300.0), ("DE", 100.0), ("IT", 100.0)]
    assert top_regions({}, n=3) == []


def test_integers_too_large_for_a_float_count_as_zero():
    assert to_magnitude(10**400) == 0.0

    scale = build_scale([10**400, 5], policy="interpolate")
    assert scale.thresholds[-1] == 5.0
    assert color_for(10**400, scale) == scale.lowest_color
