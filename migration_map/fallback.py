"""
Supplemental route endpoints for countries outside the polygon dataset.

Rough country centroids (good enough for route lines), consulted only when
the polygon index has no entry for a code. Keys are canonical ISO 3166-1
alpha-2 codes; points are (longitude, latitude).
"""

from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from loguru import logger
from shapely.geometry import Point

from .codes import normalize

_LON_LAT: Dict[str, Sequence[float]] = {
    # Eastern neighbourhood
    "UA": (31.00, 49.00),
    "BY": (27.95, 53.71),
    "MD": (28.37, 47.41),
    "RU": (37.62, 55.75),
    "GE": (43.36, 42.32),
    "AM": (45.04, 40.07),
    "AZ": (47.58, 40.14),
    # Western Balkans
    "AL": (20.17, 41.15),
    "BA": (17.60, 44.30),
    "ME": (19.27, 42.75),
    "MK": (21.75, 41.60),
    "RS": (21.01, 44.02),
    "XK": (20.90, 42.60),
    # Middle East
    "TR": (35.24, 38.96),
    "SY": (38.99, 34.80),
    "IQ": (43.68, 33.22),
    "IR": (53.69, 32.43),
    "JO": (36.24, 30.59),
    "LB": (35.86, 33.85),
    "PS": (35.23, 31.95),
    "YE": (48.52, 15.55),
    # South and Central Asia
    "AF": (67.71, 33.94),
    "PK": (69.35, 30.38),
    "BD": (90.36, 23.68),
    "IN": (78.96, 20.59),
    "LK": (80.77, 7.87),
    "NP": (84.12, 28.39),
    # North Africa
    "MA": (-7.09, 31.79),
    "DZ": (1.66, 28.03),
    "TN": (9.54, 33.89),
    "LY": (17.23, 26.34),
    "EG": (30.80, 26.82),
    # Sub-Saharan Africa
    "SN": (-14.45, 14.50),
    "GM": (-15.31, 13.44),
    "GN": (-9.70, 9.95),
    "ML": (-3.99, 17.57),
    "CI": (-5.55, 7.54),
    "BF": (-1.56, 12.24),
    "NE": (8.08, 17.61),
    "NG": (8.68, 9.08),
    "GH": (-1.02, 7.95),
    "CM": (12.35, 7.37),
    "TD": (18.73, 15.45),
    "SD": (30.22, 12.86),
    "ER": (39.78, 15.18),
    "ET": (40.49, 9.15),
    "SO": (46.20, 5.15),
    "CD": (21.76, -4.04),
    # Americas
    "CO": (-74.30, 4.57),
    "VE": (-66.59, 6.42),
    "PE": (-75.02, -9.19),
    # Non-EU Europe
    "GB": (-3.44, 55.38),
    "CH": (8.23, 46.82),
    "NO": (8.47, 60.47),
    "IS": (-19.02, 64.96),
}

FALLBACK_COORDINATES: Dict[str, Point] = {
    code: Point(lon, lat) for code, (lon, lat) in _LON_LAT.items()
}


def build_fallback_table(
    extra: Optional[Mapping[str, Sequence[float]]] = None,
    normalizer: Callable[[Any], str] = normalize,
) -> Dict[str, Point]:
    """
    Fallback table with configured extra points merged in.

    Args:
        extra: code -> [longitude, latitude]; entries override the static table
        normalizer: Region code normalizer applied to the configured codes

    Returns:
        New mapping of canonical code -> Point
    """
    table: Dict[str, Point] = {}
    for code, point in FALLBACK_COORDINATES.items():
        table.setdefault(normalizer(code), point)
    for raw_code, lon_lat in (extra or {}).items():
        code = normalizer(raw_code)
        try:
            lon, lat = float(lon_lat[0]), float(lon_lat[1])
        except (TypeError, ValueError, IndexError):
            logger.warning(f"⚠️ Ignoring fallback coordinate for {raw_code!r}: {lon_lat!r}")
            continue
        table[code] = Point(lon, lat)
    return table
