"""
Choropleth color scales and route line widths.

Breakpoint policies:
- ``quantile`` (default): threshold 0 plus the distinct lower bounds of
  equal-size quantile classes over the strictly positive values
- ``interpolate``: three stops at min, midpoint and max of all values
- ``fixed``: breakpoints supplied by configuration

Whatever the policy, thresholds are repaired to be strictly increasing
before colors are attached, so every lookup is well defined.
"""

import math
from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import matplotlib as mpl
import numpy as np
import pandas as pd
from loguru import logger
from matplotlib.colors import LinearSegmentedColormap, to_hex

SCALE_POLICIES = ("quantile", "interpolate", "fixed")

DEFAULT_POLICY = "quantile"
DEFAULT_CLASSES = 5
DEFAULT_PALETTE: Tuple[str, ...] = ("#fde0dd", "#fcae91", "#fb6a4a")
DEFAULT_BREAKPOINTS: Tuple[float, ...] = (0, 1_000, 10_000, 50_000, 100_000, 250_000)

# Route width in pixels, interpolated linearly on the flow count
LINE_WIDTH_STOPS: Tuple[Tuple[float, float], ...] = (
    (0, 1.5),
    (50_000, 3.5),
    (120_000, 6.0),
    (250_000, 9.0),
)
LINE_WIDTH_LEGEND: Tuple[Tuple[str, float], ...] = (
    ("50,000", 3.5),
    ("120,000", 6.0),
    ("250,000", 9.0),
)

Palette = Union[str, Sequence[str]]


def to_magnitude(value: Any) -> float:
    """Coerce a raw statistic to a finite non-negative float; anything else is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


@dataclass(frozen=True)
class ColorScale:
    """Strictly increasing thresholds, each paired with a color."""

    thresholds: Tuple[float, ...]
    colors: Tuple[str, ...]
    policy: str = DEFAULT_POLICY

    def __post_init__(self) -> None:
        if not self.thresholds:
            raise ValueError("ColorScale needs at least one threshold")
        if len(self.thresholds) != len(self.colors):
            raise ValueError(
                f"Got {len(self.thresholds)} thresholds but {len(self.colors)} colors"
            )
        for lower, upper in zip(self.thresholds, self.thresholds[1:]):
            if upper <= lower:
                raise ValueError(f"Thresholds must strictly increase: {self.thresholds}")

    @property
    def lowest_color(self) -> str:
        return self.colors[0]

    @property
    def highest_color(self) -> str:
        return self.colors[-1]

    @property
    def domain(self) -> Tuple[float, float]:
        return self.thresholds[0], self.thresholds[-1]

    def stops(self) -> List[Tuple[float, str]]:
        return list(zip(self.thresholds, self.colors))


def repair_thresholds(thresholds: Iterable[float]) -> List[float]:
    """
    Make a threshold sequence strictly increasing.

    Each value that is not above its predecessor is raised to the smallest
    representable float above the predecessor.
    """
    repaired: List[float] = []
    for value in thresholds:
        value = float(value)
        if repaired and not value > repaired[-1]:
            value = float(np.nextafter(repaired[-1], np.inf))
        repaired.append(value)
    return repaired


def _colormap(palette: Palette) -> mpl.colors.Colormap:
    if isinstance(palette, str):
        return mpl.colormaps[palette]
    colors = list(palette)
    if not colors:
        raise ValueError("Palette must contain at least one color")
    if len(colors) == 1:
        colors = colors * 2
    return LinearSegmentedColormap.from_list("migration_map", colors)


def sample_palette(palette: Palette, count: int) -> List[str]:
    """Sample ``count`` hex colors evenly from a colormap name or color list."""
    cmap = _colormap(palette)
    positions = np.linspace(0.0, 1.0, count) if count > 1 else np.array([0.0])
    return [to_hex(cmap(float(position))) for position in positions]


def _half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def _quantile_breaks(values: List[float], classes: int) -> List[float]:
    positive = [value for value in values if value > 0]
    if not positive:
        return [0.0, 1.0]
    probabilities = np.linspace(0.0, 1.0, max(classes, 1) + 1)[:-1]
    lower_bounds = np.quantile(np.asarray(positive, dtype=float), probabilities)
    # Equal bounds mean empty classes; merge them
    return [0.0] + [float(bound) for bound in np.unique(lower_bounds)]


def _interpolated_breaks(values: List[float]) -> List[float]:
    if not values:
        return [0.0, 1.0, 1.0]
    low, high = min(values), max(values)
    return [low, _half_up((low + high) / 2), high]


def build_scale(
    values: Iterable[Any],
    policy: str = DEFAULT_POLICY,
    classes: int = DEFAULT_CLASSES,
    palette: Palette = DEFAULT_PALETTE,
    breakpoints: Optional[Sequence[float]] = None,
) -> ColorScale:
    """
    Build a color scale for a sample of statistic values.

    Args:
        values: Observed statistic values; invalid or negative entries count as 0
        policy: One of ``quantile``, ``interpolate`` or ``fixed``
        classes: Number of quantile classes for the ``quantile`` policy
        palette: matplotlib colormap name or sequence of colors
        breakpoints: Thresholds for the ``fixed`` policy

    Returns:
        ColorScale whose first threshold carries the palette's lowest color
        and whose last threshold carries the highest

    Raises:
        ValueError: If the policy is unknown
    """
    if policy not in SCALE_POLICIES:
        raise ValueError(f"Unknown scale policy: {policy!r} (expected one of {SCALE_POLICIES})")

    cleaned = [to_magnitude(value) for value in values]

    if policy == "quantile":
        raw = _quantile_breaks(cleaned, classes)
    elif policy == "interpolate":
        raw = _interpolated_breaks(cleaned)
    else:
        raw = [to_magnitude(value) for value in (breakpoints or DEFAULT_BREAKPOINTS)]

    thresholds = repair_thresholds(raw)
    if thresholds != [float(value) for value in raw]:
        logger.debug(f"  🔧 Repaired non-increasing thresholds {raw} -> {thresholds}")

    colors = sample_palette(palette, len(thresholds))
    logger.debug(f"  📊 Color thresholds ({policy}): {thresholds}")
    return ColorScale(thresholds=tuple(thresholds), colors=tuple(colors), policy=policy)


def color_for(value: Any, scale: ColorScale) -> str:
    """
    Color of the highest threshold not exceeding the clamped value.

    Missing, non-numeric and non-positive values get the lowest color.
    """
    magnitude = to_magnitude(value)
    if magnitude <= 0:
        return scale.lowest_color
    low, high = scale.domain
    clamped = min(max(magnitude, low), high)
    position = bisect_right(scale.thresholds, clamped) - 1
    return scale.colors[max(position, 0)]


def line_width_for(count: Any) -> float:
    """Route line width for a flow count, clamped to the outer stops."""
    counts, widths = zip(*LINE_WIDTH_STOPS)
    return float(np.interp(to_magnitude(count), counts, widths))


def value_range(totals: Mapping[str, Any]) -> Dict[str, float]:
    """Min, midpoint and max of a statistic mapping, for legend labels."""
    values = [to_magnitude(value) for value in totals.values()]
    if not values:
        return {"min": 0.0, "mid": 1.0, "max": 1.0}
    low, high = min(values), max(values)
    return {"min": low, "mid": _half_up((low + high) / 2), "max": high}


def top_regions(totals: Mapping[str, Any], n: int = 10) -> List[Tuple[str, float]]:
    """Largest ``n`` regions by value; ties keep their input order."""
    if not totals or n <= 0:
        return []
    series = pd.Series({code: to_magnitude(value) for code, value in totals.items()}, dtype=float)
    ranked = series.sort_values(ascending=False, kind="mergesort").head(n)
    return [(str(code), float(value)) for code, value in ranked.items()]
