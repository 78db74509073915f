"""
Two-mode view state: arrivals choropleth vs. route lines.

The statistic fill layer is always drawn; it is dimmed while routes are
shown. Route line and arrow layers are visible only in flow mode. Event
handlers are tracked per (layer, event) and detached before being attached
again, so rebinding after a re-render or a mode switch never stacks
listeners.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qs

from loguru import logger

from .codes import properties_of, region_code_of, region_name_of
from .scale import to_magnitude
from .sink import Handler, LayerSink

MODE_QUERY_PARAM = "v"


class ViewMode(Enum):
    STATISTIC = "arrivals"
    FLOW = "routes"

    @classmethod
    def from_query(cls, query: Union[str, Mapping[str, Any], None]) -> "ViewMode":
        """
        Initial mode from navigation state.

        Accepts a query string (``"v=routes"``) or a parameter mapping. Only
        ``routes`` selects flow mode; anything else, including a missing
        parameter, selects the statistic view.
        """
        if query is None:
            return cls.STATISTIC
        if isinstance(query, str):
            values = parse_qs(query.lstrip("?")).get(MODE_QUERY_PARAM, [])
            value = values[0] if values else None
        else:
            value = query.get(MODE_QUERY_PARAM)
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
        return cls.FLOW if value == cls.FLOW.value else cls.STATISTIC


@dataclass(frozen=True)
class LayerIds:
    statistic_fill: str = "countries-fill"
    statistic_outline: str = "countries-outline"
    flow_line: str = "routes-line"
    flow_arrows: str = "routes-arrows"

    @property
    def flow_layers(self) -> Tuple[str, str]:
        return self.flow_line, self.flow_arrows


@dataclass(frozen=True)
class RegionDetail:
    name: str
    code: str
    value: float
    lng_lat: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class RouteDetail:
    origin: str
    destination: str
    count: float
    path: str = ""
    lng_lat: Optional[Tuple[float, float]] = None


ModeListener = Callable[[ViewMode], None]


def _first_feature(event: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    features = event.get("features") or []
    first = features[0] if features else None
    return first if isinstance(first, Mapping) else None


class ViewStateManager:
    """Keeps layer visibility, opacity, transient details and handlers in line with the mode."""

    def __init__(
        self,
        sink: LayerSink,
        initial_mode: ViewMode = ViewMode.STATISTIC,
        layers: Optional[LayerIds] = None,
        statistic_opacity: float = 0.75,
        dimmed_opacity: float = 0.15,
    ):
        self.sink = sink
        self.mode = initial_mode
        self.layers = layers or LayerIds()
        self.statistic_opacity = statistic_opacity
        self.dimmed_opacity = dimmed_opacity

        self.region_detail: Optional[RegionDetail] = None
        self.route_detail: Optional[RouteDetail] = None
        self.cursor = ""

        self._registered: Dict[Tuple[str, str], Handler] = {}
        self._listeners: List[ModeListener] = []

    @property
    def fill_opacity(self) -> float:
        return self.dimmed_opacity if self.mode is ViewMode.FLOW else self.statistic_opacity

    @property
    def flow_visibility(self) -> str:
        return "visible" if self.mode is ViewMode.FLOW else "none"

    def add_mode_listener(self, listener: ModeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def apply(self) -> None:
        """Push visibility and opacity for the current mode to the sink."""
        for layer_id in self.layers.flow_layers:
            if self.sink.has_layer(layer_id):
                self.sink.set_layout_property(layer_id, "visibility", self.flow_visibility)
        if self.sink.has_layer(self.layers.statistic_fill):
            self.sink.set_paint_property(self.layers.statistic_fill, "fill-opacity", self.fill_opacity)

    def switch_to(self, mode: ViewMode) -> None:
        """
        Switch the active mode.

        Clears the detail display of the mode being left, notifies mode
        listeners, then re-applies layer state and handlers. Switching to the
        active mode only re-applies.
        """
        previous = self.mode
        if mode is not previous:
            if previous is ViewMode.FLOW:
                self.route_detail = None
            else:
                self.region_detail = None
            self.mode = mode
            logger.debug(f"🔀 View switched {previous.value} -> {mode.value}")
            for listener in self._listeners:
                listener(mode)

        self.apply()
        self.bind_handlers()

    # Handlers

    def _handler_table(self) -> List[Tuple[str, str, Handler]]:
        fill = self.layers.statistic_fill
        line = self.layers.flow_line
        return [
            (fill, "click", self._on_region_click),
            (fill, "mouseenter", self._on_region_enter),
            (fill, "mouseleave", self._on_region_leave),
            (line, "mousemove", self._on_route_move),
            (line, "mouseleave", self._on_route_leave),
        ]

    def bind_handlers(self) -> None:
        """Attach interaction handlers, detaching any earlier registration first."""
        for layer_id, event, handler in self._handler_table():
            if not self.sink.has_layer(layer_id):
                continue
            key = (layer_id, event)
            previous = self._registered.get(key)
            if previous is not None:
                self.sink.off(event, layer_id, previous)
            self.sink.on(event, layer_id, handler)
            self._registered[key] = handler

    def unbind_handlers(self) -> None:
        for (layer_id, event), handler in self._registered.items():
            self.sink.off(event, layer_id, handler)
        self._registered.clear()

    def _on_region_click(self, event: Dict[str, Any]) -> None:
        feature = _first_feature(event)
        if feature is None:
            return
        properties = properties_of(feature)
        code = region_code_of(feature)
        self.region_detail = RegionDetail(
            name=region_name_of(properties),
            code=code or "??",
            value=to_magnitude(properties.get("value")),
            lng_lat=event.get("lng_lat"),
        )
        self.route_detail = None

    def _on_region_enter(self, event: Dict[str, Any]) -> None:
        self.cursor = "pointer"

    def _on_region_leave(self, event: Dict[str, Any]) -> None:
        self.cursor = ""

    def _on_route_move(self, event: Dict[str, Any]) -> None:
        if self.mode is not ViewMode.FLOW:
            return
        feature = _first_feature(event)
        if feature is None:
            return
        properties = properties_of(feature)
        self.route_detail = RouteDetail(
            origin=str(properties.get("from") or ""),
            destination=str(properties.get("to") or ""),
            count=to_magnitude(properties.get("count")),
            path=str(properties.get("path") or ""),
            lng_lat=event.get("lng_lat"),
        )

    def _on_route_leave(self, event: Dict[str, Any]) -> None:
        self.route_detail = None
