"""
Scene assembly: join polygons, statistics and flows into renderable layers.

``build_scene`` is pure. It produces new feature collections and leaves the
loaded datasets untouched. ``apply_scene`` pushes a scene into a render sink
with replace-in-place semantics, so applying the same scene twice leaves one
copy of every source, layer and handler.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from .codes import CodeNormalizer, build_alias_table, properties_of, region_code_of, region_name_of
from .fallback import build_fallback_table
from .geometry import build_centroid_index, region_features
from .loaders import DatasetBundle
from .routes import ResolvedEdge, parse_flow_records, routes_feature_collection, synthesize
from .scale import (
    DEFAULT_CLASSES,
    DEFAULT_PALETTE,
    DEFAULT_POLICY,
    LINE_WIDTH_LEGEND,
    ColorScale,
    Palette,
    build_scale,
    color_for,
    to_magnitude,
    top_regions,
    value_range,
)
from .sink import LayerSink
from .view_state import ViewMode, ViewStateManager

REGIONS_SOURCE = "countries"
ROUTES_SOURCE = "routes"
REGION_ID_PROPERTY = "ISO2"
FEATURE_STATE_KEY = "arrivals"

ROUTE_COLOR = "#ef4444"
OUTLINE_COLOR = "#ffffff"


@dataclass
class SceneSettings:
    """Tunable inputs of scene assembly, usually taken from config.yaml."""

    scale_policy: str = DEFAULT_POLICY
    scale_classes: int = DEFAULT_CLASSES
    palette: Palette = DEFAULT_PALETTE
    breakpoints: Optional[Sequence[float]] = None
    aliases: Dict[str, str] = field(default_factory=dict)
    fallback_coordinates: Dict[str, Sequence[float]] = field(default_factory=dict)
    top_n: int = 10


@dataclass
class Scene:
    fill_layer: Dict[str, Any]
    line_layer: Dict[str, Any]
    scale: ColorScale
    mode: ViewMode
    totals: Dict[str, float]
    routes: List[ResolvedEdge]
    dropped_routes: int = 0
    legend: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "scale": {
                "policy": self.scale.policy,
                "thresholds": list(self.scale.thresholds),
                "colors": list(self.scale.colors),
            },
            "legend": self.legend,
            "fill_layer": self.fill_layer,
            "line_layer": self.line_layer,
            "dropped_routes": self.dropped_routes,
        }


def canonical_totals(statistics: Mapping[str, Any], normalizer: CodeNormalizer) -> Dict[str, float]:
    """Statistic totals keyed by canonical code; aliased duplicates are summed."""
    totals: Dict[str, float] = {}
    for raw_code, value in (statistics.get("totalsByCountry") or {}).items():
        code = normalizer(raw_code)
        if not code:
            continue
        if code in totals:
            logger.debug(f"  Merging statistic for {raw_code!r} into {code}")
        totals[code] = totals.get(code, 0.0) + to_magnitude(value)
    return totals


def annotate_regions(
    polygons: Mapping[str, Any],
    totals: Mapping[str, float],
    scale: ColorScale,
    normalizer: CodeNormalizer,
) -> Dict[str, Any]:
    """New FeatureCollection with canonical code, value and color per feature."""
    features = []
    for raw in polygons.get("features") or []:
        if not isinstance(raw, Mapping):
            continue
        raw_code = region_code_of(raw)
        code = normalizer(raw_code) if raw_code else None
        value = totals.get(code, 0.0) if code else 0.0
        source_properties = properties_of(raw)
        properties = copy.deepcopy(dict(source_properties))
        properties.update(
            {
                REGION_ID_PROPERTY: code,
                "name": region_name_of(source_properties),
                "value": value,
                "color": color_for(value, scale),
            }
        )
        features.append(
            {
                "type": "Feature",
                "id": code,
                "properties": properties,
                "geometry": copy.deepcopy(raw.get("geometry")),
            }
        )
    return {"type": "FeatureCollection", "features": features}


def build_scene(
    bundle: DatasetBundle,
    mode: ViewMode = ViewMode.STATISTIC,
    settings: Optional[SceneSettings] = None,
) -> Scene:
    """
    Join the three datasets into a scene.

    Args:
        bundle: Loaded polygon, statistics and flow datasets
        mode: View mode the scene is rendered for
        settings: Scale, alias and fallback settings

    Returns:
        Scene with the annotated fill layer, resolved route lines, the color
        scale and legend data
    """
    settings = settings or SceneSettings()
    normalizer = CodeNormalizer(build_alias_table(settings.aliases))

    logger.info("🗺️ Building scene...")
    features = region_features(bundle.polygons, normalizer)
    index = build_centroid_index(features)
    fallback = build_fallback_table(settings.fallback_coordinates, normalizer)

    totals = canonical_totals(bundle.statistics, normalizer)
    scale = build_scale(
        totals.values(),
        policy=settings.scale_policy,
        classes=settings.scale_classes,
        palette=settings.palette,
        breakpoints=settings.breakpoints,
    )
    fill_layer = annotate_regions(bundle.polygons, totals, scale, normalizer)

    edges = parse_flow_records(bundle.flows, normalizer)
    resolved = synthesize(edges, index, fallback, normalizer)
    line_layer = routes_feature_collection(resolved)

    legend = {
        "range": value_range(totals),
        "stops": [[threshold, color] for threshold, color in scale.stops()],
        "top": [[code, value] for code, value in top_regions(totals, settings.top_n)],
        "line_widths": [[label, width] for label, width in LINE_WIDTH_LEGEND],
    }

    scene = Scene(
        fill_layer=fill_layer,
        line_layer=line_layer,
        scale=scale,
        mode=mode,
        totals=totals,
        routes=resolved,
        dropped_routes=len(edges) - len(resolved),
        legend=legend,
    )
    logger.success(
        f"  ✅ Scene ready: {len(fill_layer['features'])} regions, "
        f"{len(resolved)} routes ({scene.dropped_routes} dropped)"
    )
    return scene


def _layer_specs(view: ViewStateManager) -> List[Dict[str, Any]]:
    layers = view.layers
    return [
        {
            "id": layers.statistic_fill,
            "type": "fill",
            "source": REGIONS_SOURCE,
            "paint": {
                "fill-color": ["get", "color"],
                "fill-opacity": view.fill_opacity,
            },
        },
        {
            "id": layers.statistic_outline,
            "type": "line",
            "source": REGIONS_SOURCE,
            "paint": {"line-color": OUTLINE_COLOR, "line-width": 1.2, "line-opacity": 0.9},
        },
        {
            "id": layers.flow_line,
            "type": "line",
            "source": ROUTES_SOURCE,
            "layout": {"line-cap": "round", "line-join": "round"},
            "paint": {"line-color": ROUTE_COLOR, "line-opacity": 0.85, "line-width": ["get", "width"]},
        },
        {
            "id": layers.flow_arrows,
            "type": "symbol",
            "source": ROUTES_SOURCE,
            "layout": {
                "symbol-placement": "line",
                "symbol-spacing": 120,
                "text-field": "▶",
                "text-size": 14,
                "text-keep-upright": False,
                "text-rotation-alignment": "map",
            },
            "paint": {"text-color": ROUTE_COLOR, "text-opacity": 0.9},
        },
    ]


def _put_source(sink: LayerSink, source_id: str, data: Dict[str, Any], promote_id: Optional[str] = None) -> None:
    if sink.has_source(source_id):
        sink.set_source_data(source_id, data)
    else:
        sink.add_source(source_id, data, promote_id=promote_id)


def apply_scene(sink: LayerSink, scene: Scene, view: ViewStateManager) -> None:
    """
    Push a scene into the sink.

    Sources are replaced in place, layers are added only when missing, and
    handlers are rebound through the view manager, so repeated calls never
    duplicate rendered artifacts or listeners.
    """
    _put_source(sink, REGIONS_SOURCE, scene.fill_layer, promote_id=REGION_ID_PROPERTY)
    _put_source(sink, ROUTES_SOURCE, scene.line_layer)

    for spec in _layer_specs(view):
        if not sink.has_layer(spec["id"]):
            sink.add_layer(spec)

    for feature in scene.fill_layer["features"]:
        code = feature["properties"].get(REGION_ID_PROPERTY)
        if code:
            sink.set_feature_state(REGIONS_SOURCE, code, {FEATURE_STATE_KEY: feature["properties"]["value"]})

    view.switch_to(scene.mode)
    logger.debug(f"  🎨 Applied scene in {scene.mode.value} mode")
