"""
Representative points for region polygons.

Each region gets one point used as a route endpoint: the centre of the
axis-aligned bounding box over every coordinate pair of its geometry. Polygon
and MultiPolygon geometries are handled the same way by flattening all rings.
This is not an area-weighted centroid and should not be used for statistics.
"""

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from loguru import logger
from shapely.geometry import MultiPoint, Point

from .codes import normalize, properties_of, region_code_of

Coordinate = Tuple[float, float]


@dataclass
class RegionFeature:
    """One polygon feature with its canonical code and derived point."""

    code: str
    geometry: Mapping[str, Any]
    properties: Mapping[str, Any] = field(default_factory=dict)
    representative_point: Optional[Point] = None


def _as_pair(value: Any) -> Optional[Coordinate]:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return None
    lon, lat = value[0], value[1]
    if isinstance(lon, bool) or isinstance(lat, bool):
        return None
    if not isinstance(lon, Real) or not isinstance(lat, Real):
        return None
    lon, lat = float(lon), float(lat)
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return None
    return lon, lat


def _walk(coordinates: Any) -> Iterator[Coordinate]:
    pair = _as_pair(coordinates)
    if pair is not None:
        yield pair
        return
    if isinstance(coordinates, (list, tuple)):
        for item in coordinates:
            yield from _walk(item)


def iter_coordinate_pairs(geometry: Optional[Mapping[str, Any]]) -> Iterator[Coordinate]:
    """Yield every usable (lon, lat) pair in a GeoJSON geometry, all rings included."""
    if not geometry or not isinstance(geometry, Mapping):
        return
    if geometry.get("type") == "GeometryCollection":
        for member in geometry.get("geometries") or []:
            yield from iter_coordinate_pairs(member)
        return
    yield from _walk(geometry.get("coordinates"))


def representative_point(geometry: Optional[Mapping[str, Any]]) -> Optional[Point]:
    """
    Bounding-box centre of a geometry.

    Args:
        geometry: GeoJSON Polygon or MultiPolygon mapping

    Returns:
        Point inside the geometry's own bounding box, or None when the
        geometry has no extractable coordinate pairs
    """
    pairs = list(iter_coordinate_pairs(geometry))
    if not pairs:
        return None
    min_x, min_y, max_x, max_y = MultiPoint(pairs).bounds
    return Point((min_x + max_x) / 2, (min_y + max_y) / 2)


def region_features(
    collection: Mapping[str, Any],
    normalizer: Callable[[Any], str] = normalize,
) -> List[RegionFeature]:
    """
    Wrap the features of a FeatureCollection as RegionFeature objects.

    Features without any region code are skipped. The input collection is
    not modified.
    """
    features: List[RegionFeature] = []
    skipped = 0
    for raw in collection.get("features") or []:
        if not isinstance(raw, Mapping):
            skipped += 1
            continue
        raw_code = region_code_of(raw)
        if raw_code is None:
            skipped += 1
            continue
        geometry = raw.get("geometry") or {}
        features.append(
            RegionFeature(
                code=normalizer(raw_code),
                geometry=geometry,
                properties=dict(properties_of(raw)),
                representative_point=representative_point(geometry),
            )
        )

    if skipped:
        logger.debug(f"  ⚠️ Skipped {skipped} features without a region code")
    return features


def build_centroid_index(features: Iterable[RegionFeature]) -> Dict[str, Point]:
    """
    Map canonical region codes to representative points.

    Features lacking coordinates are omitted rather than stored with a null
    point. When a code appears twice the first feature wins.
    """
    index: Dict[str, Point] = {}
    malformed: List[str] = []

    for feature in features:
        point = feature.representative_point
        if point is None:
            point = representative_point(feature.geometry)
        if point is None:
            malformed.append(feature.code)
            continue
        if feature.code in index:
            logger.debug(f"  Duplicate region code {feature.code}, keeping first geometry")
            continue
        index[feature.code] = point

    if malformed:
        logger.warning(f"  ⚠️ {len(malformed)} features have no usable coordinates: {malformed[:5]}")
    logger.debug(f"  📍 Indexed {len(index)} representative points")
    return index
