"""
Static export of a scene: scene JSON and a folium HTML map.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import folium
import geopandas as gpd
from loguru import logger
from shapely.errors import GEOSException
from shapely.geometry import shape

from .geometry import iter_coordinate_pairs
from .scale import line_width_for
from .scene import OUTLINE_COLOR, REGION_ID_PROPERTY, ROUTE_COLOR, Scene
from .view_state import ViewMode

DEFAULT_CENTER = (46.0, 14.0)
DEFAULT_ZOOM = 4
DEFAULT_TILES = "CartoDB Positron"

STATISTIC_OPACITY = 0.75
DIMMED_OPACITY = 0.15


def fill_layer_geodataframe(scene: Scene) -> gpd.GeoDataFrame:
    """
    GeoDataFrame of the annotated region features.

    Features whose geometry cannot be built are left out of the export.
    """
    records: List[Dict[str, Any]] = []
    geometries = []
    for feature in scene.fill_layer["features"]:
        geometry = feature.get("geometry")
        if not any(True for _ in iter_coordinate_pairs(geometry)):
            continue
        try:
            geometries.append(shape(geometry))
        except (GEOSException, ValueError, TypeError, AttributeError, KeyError) as e:
            logger.warning(f"  ⚠️ Skipping geometry for {feature.get('id')}: {e}")
            continue
        properties = feature["properties"]
        records.append(
            {
                REGION_ID_PROPERTY: properties.get(REGION_ID_PROPERTY),
                "name": properties.get("name"),
                "value": properties.get("value", 0.0),
                "color": properties.get("color"),
            }
        )
    columns = [REGION_ID_PROPERTY, "name", "value", "color"]
    return gpd.GeoDataFrame(records, columns=columns, geometry=geometries, crs="EPSG:4326")


def _arrow_icon(bearing: float) -> folium.DivIcon:
    # The glyph points east, compass bearings start at north
    html = (
        f'<div style="transform: rotate({bearing - 90:.1f}deg); color: {ROUTE_COLOR}; '
        f'font-size: 14px; line-height: 14px;">&#9654;</div>'
    )
    return folium.DivIcon(html=html, icon_size=(14, 14), icon_anchor=(7, 7))


def _legend_html(scene: Scene) -> str:
    value_range = scene.legend.get("range", {})
    top = scene.legend.get("top", [])
    rows = "".join(
        f"<tr><td>{position}.</td><td><b>{code}</b></td><td align='right'>{value:,.0f}</td></tr>"
        for position, (code, value) in enumerate(top, 1)
    )
    gradient = ", ".join(scene.scale.colors)
    return f"""
    <div style="position: fixed; top: 16px; right: 16px; z-index: 9999; width: 260px;
                background: rgba(255,255,255,0.92); border-radius: 12px; padding: 12px;
                box-shadow: 0 10px 30px rgba(0,0,0,0.12); font-size: 12px;">
      <b style="font-size: 16px;">Arrivals</b>
      <div style="height: 12px; border-radius: 6px; margin: 8px 0 4px 0;
                  background: linear-gradient(90deg, {gradient});"></div>
      <div style="display: flex; justify-content: space-between;">
        <span>{value_range.get('min', 0):,.0f}</span>
        <span>{value_range.get('mid', 0):,.0f}</span>
        <span>{value_range.get('max', 0):,.0f}</span>
      </div>
      <table style="width: 100%; margin-top: 8px;">{rows}</table>
    </div>
    """


def _map_center(gdf: gpd.GeoDataFrame) -> Tuple[float, float]:
    if gdf.empty:
        return DEFAULT_CENTER
    bounds = gdf.total_bounds
    return (bounds[1] + bounds[3]) / 2, (bounds[0] + bounds[2]) / 2


def render_folium_map(
    scene: Scene,
    output_path: Union[str, Path],
    tiles: str = DEFAULT_TILES,
    zoom_start: int = DEFAULT_ZOOM,
    center: Optional[Tuple[float, float]] = None,
) -> Path:
    """
    Write the scene as an interactive HTML map.

    Args:
        scene: Scene to render
        output_path: Destination HTML file
        tiles: folium tile layer name
        zoom_start: Initial zoom level
        center: (lat, lon) map centre; defaults to the centre of the regions

    Returns:
        Path of the written file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"🗺️ Rendering {scene.mode.value} map to {output_path}")

    gdf = fill_layer_geodataframe(scene)
    center = center or _map_center(gdf)
    m = folium.Map(location=list(center), zoom_start=zoom_start, tiles=tiles, prefer_canvas=True)

    flow_mode = scene.mode is ViewMode.FLOW
    fill_opacity = DIMMED_OPACITY if flow_mode else STATISTIC_OPACITY

    if not gdf.empty:
        folium.GeoJson(
            data=gdf,
            name="Arrivals",
            style_function=lambda feature: {
                "fillColor": feature["properties"]["color"],
                "color": OUTLINE_COLOR,
                "weight": 1.2,
                "fillOpacity": fill_opacity,
                "opacity": 0.9,
            },
            tooltip=folium.GeoJsonTooltip(
                fields=["name", REGION_ID_PROPERTY, "value"],
                aliases=["Country:", "Code:", "Arrivals:"],
                localize=True,
                sticky=False,
                labels=True,
            ),
        ).add_to(m)

    routes_group = folium.FeatureGroup(name="Routes", show=flow_mode)
    for resolved in scene.routes:
        edge = resolved.edge
        (lon1, lat1), (lon2, lat2) = resolved.coordinates
        tooltip = f"{edge.origin} → {edge.destination}: {edge.magnitude:,.0f}"
        if edge.label:
            tooltip += f"<br>{edge.label}"
        folium.PolyLine(
            locations=[(lat1, lon1), (lat2, lon2)],
            color=ROUTE_COLOR,
            weight=line_width_for(edge.magnitude),
            opacity=0.85,
            tooltip=tooltip,
        ).add_to(routes_group)
        folium.Marker(
            location=((lat1 + lat2) / 2, (lon1 + lon2) / 2),
            icon=_arrow_icon(resolved.bearing),
        ).add_to(routes_group)
    routes_group.add_to(m)

    m.get_root().html.add_child(folium.Element(_legend_html(scene)))
    folium.LayerControl(collapsed=False).add_to(m)

    m.save(str(output_path))
    logger.success(f"  ✅ Map saved: {output_path}")
    return output_path


def write_scene_json(scene: Scene, output_path: Union[str, Path]) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(scene.to_dict(), f, ensure_ascii=False)
    logger.success(f"  ✅ Scene saved: {output_path}")
    return output_path
