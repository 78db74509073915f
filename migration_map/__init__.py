"""
Migration map engine

Joins administrative polygons, per-country arrival totals and
origin/destination flow records into a renderable scene: a choropleth fill
layer, route lines with bearings, and a two-mode view state.
"""

__version__ = "0.1.0"

from .bearing import initial_bearing
from .codes import CodeNormalizer, normalize
from .context import MapContext
from .errors import DatasetLoadError, MigrationMapError, SinkRemovedError
from .geometry import build_centroid_index, representative_point
from .loaders import DatasetBundle, DatasetSources, load_datasets
from .routes import FlowEdge, ResolvedEdge, synthesize
from .scale import ColorScale, build_scale, color_for
from .scene import Scene, SceneSettings, apply_scene, build_scene
from .sink import LayerSink
from .view_state import ViewMode, ViewStateManager

__all__ = [
    "normalize",
    "CodeNormalizer",
    "build_centroid_index",
    "representative_point",
    "build_scale",
    "color_for",
    "ColorScale",
    "FlowEdge",
    "ResolvedEdge",
    "synthesize",
    "initial_bearing",
    "ViewMode",
    "ViewStateManager",
    "LayerSink",
    "DatasetBundle",
    "DatasetSources",
    "load_datasets",
    "Scene",
    "SceneSettings",
    "build_scene",
    "apply_scene",
    "MapContext",
    "MigrationMapError",
    "DatasetLoadError",
    "SinkRemovedError",
]
