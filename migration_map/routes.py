"""
Route synthesis: turn origin/destination flow records into line geometries.

Endpoints resolve through two tiers, the polygon centroid index first and the
static fallback table second. A record whose origin or destination cannot be
resolved is dropped; it never reaches the line layer with empty or
degenerate coordinates.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from loguru import logger
from shapely.geometry import Point

from .bearing import initial_bearing
from .codes import normalize
from .scale import line_width_for, to_magnitude

PointIndex = Mapping[str, Point]


@dataclass(frozen=True)
class FlowEdge:
    """A directed origin -> destination flow with its magnitude."""

    origin: str
    destination: str
    magnitude: float
    label: str = ""

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        normalizer: Callable[[Any], str] = normalize,
    ) -> "FlowEdge":
        label = record.get("path")
        return cls(
            origin=normalizer(record.get("from")),
            destination=normalizer(record.get("to")),
            magnitude=to_magnitude(record.get("count")),
            label="" if label is None else str(label),
        )


@dataclass(frozen=True)
class ResolvedEdge:
    """A FlowEdge whose endpoints both resolved to points."""

    edge: FlowEdge
    origin_point: Point
    destination_point: Point
    bearing: float

    @property
    def coordinates(self) -> List[List[float]]:
        return [
            [self.origin_point.x, self.origin_point.y],
            [self.destination_point.x, self.destination_point.y],
        ]

    def to_feature(self, feature_id: int) -> Dict[str, Any]:
        """GeoJSON LineString feature for the route line layer."""
        return {
            "type": "Feature",
            "id": feature_id,
            "properties": {
                "from": self.edge.origin,
                "to": self.edge.destination,
                "count": self.edge.magnitude,
                "path": self.edge.label,
                "bearing": self.bearing,
                "width": line_width_for(self.edge.magnitude),
            },
            "geometry": {"type": "LineString", "coordinates": self.coordinates},
        }


def parse_flow_records(
    flows: Mapping[str, Any],
    normalizer: Callable[[Any], str] = normalize,
) -> List[FlowEdge]:
    """Build FlowEdge objects from a ``{"routes": [...]}`` dataset."""
    edges = []
    for record in flows.get("routes") or []:
        if not isinstance(record, Mapping):
            logger.debug(f"  Skipping non-object route record: {record!r}")
            continue
        edges.append(FlowEdge.from_record(record, normalizer))
    return edges


def resolve_point(code: str, index: PointIndex, fallback: PointIndex) -> Optional[Point]:
    """Centroid index first, fallback table second, else None."""
    point = index.get(code)
    if point is None:
        point = fallback.get(code)
    return point


def synthesize(
    records: Iterable[Union[FlowEdge, Mapping[str, Any]]],
    index: PointIndex,
    fallback: PointIndex,
    normalizer: Callable[[Any], str] = normalize,
) -> List[ResolvedEdge]:
    """
    Resolve flow records to edges with coordinates and bearings.

    Args:
        records: Raw route mappings or already-built FlowEdge objects
        index: Canonical code -> representative point from the polygons
        fallback: Canonical code -> supplemental point
        normalizer: Region code normalizer for raw mappings

    Returns:
        Resolved edges in input order; unresolvable records are left out
    """
    resolved: List[ResolvedEdge] = []
    unresolved: Dict[str, int] = {}

    for record in records:
        edge = record if isinstance(record, FlowEdge) else FlowEdge.from_record(record, normalizer)
        origin = resolve_point(edge.origin, index, fallback)
        destination = resolve_point(edge.destination, index, fallback)

        if origin is None or destination is None:
            for code, point in ((edge.origin, origin), (edge.destination, destination)):
                if point is None:
                    unresolved[code] = unresolved.get(code, 0) + 1
            continue

        resolved.append(
            ResolvedEdge(
                edge=edge,
                origin_point=origin,
                destination_point=destination,
                bearing=initial_bearing(origin, destination),
            )
        )

    if unresolved:
        logger.info(f"  ⚠️ Dropped routes with unresolved endpoints: {dict(sorted(unresolved.items()))}")
    logger.debug(f"  🧭 Resolved {len(resolved)} routes")
    return resolved


def routes_feature_collection(resolved: Iterable[ResolvedEdge]) -> Dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [edge.to_feature(position) for position, edge in enumerate(resolved)],
    }
