"""
In-process render sink.

``LayerSink`` mirrors the source / layer / feature-state / event surface of a
vector map engine so the scene and the view state can be applied, inspected
and exercised without a browser. It performs no drawing.
"""

import copy
from collections import defaultdict
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from .errors import SinkRemovedError

Handler = Callable[[Dict[str, Any]], None]


class LayerSink:
    """Sources, layers, feature state and layer-scoped event handlers."""

    def __init__(self):
        self.sources: Dict[str, Dict[str, Any]] = {}
        self.layers: Dict[str, Dict[str, Any]] = {}
        self.layer_order: List[str] = []
        self.feature_state: Dict[Tuple[str, Any], Dict[str, Any]] = {}
        self._handlers: Dict[Tuple[str, str], List[Handler]] = defaultdict(list)
        self.removed = False

    def _check_alive(self) -> None:
        if self.removed:
            raise SinkRemovedError("Render sink has been removed")

    def _layer(self, layer_id: str) -> Dict[str, Any]:
        self._check_alive()
        if layer_id not in self.layers:
            raise KeyError(f"Layer does not exist: {layer_id}")
        return self.layers[layer_id]

    # Sources

    def has_source(self, source_id: str) -> bool:
        self._check_alive()
        return source_id in self.sources

    def add_source(self, source_id: str, data: Mapping[str, Any], promote_id: Optional[str] = None) -> None:
        self._check_alive()
        if source_id in self.sources:
            raise ValueError(f"Source already exists: {source_id}")
        self.sources[source_id] = {"data": data, "promote_id": promote_id}
        logger.trace(f"Added source {source_id}")

    def set_source_data(self, source_id: str, data: Mapping[str, Any]) -> None:
        self._check_alive()
        if source_id not in self.sources:
            raise KeyError(f"Source does not exist: {source_id}")
        self.sources[source_id]["data"] = data

    def get_source_data(self, source_id: str) -> Optional[Mapping[str, Any]]:
        self._check_alive()
        source = self.sources.get(source_id)
        return None if source is None else source["data"]

    # Layers

    def has_layer(self, layer_id: str) -> bool:
        self._check_alive()
        return layer_id in self.layers

    def add_layer(self, spec: Mapping[str, Any]) -> None:
        self._check_alive()
        layer_id = spec["id"]
        if layer_id in self.layers:
            raise ValueError(f"Layer already exists: {layer_id}")
        if spec.get("source") not in self.sources:
            raise KeyError(f"Layer {layer_id} references unknown source {spec.get('source')}")
        layer = copy.deepcopy(dict(spec))
        layer.setdefault("layout", {})
        layer.setdefault("paint", {})
        layer["layout"].setdefault("visibility", "visible")
        self.layers[layer_id] = layer
        self.layer_order.append(layer_id)
        logger.trace(f"Added layer {layer_id}")

    def set_layout_property(self, layer_id: str, name: str, value: Any) -> None:
        self._layer(layer_id)["layout"][name] = value

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None:
        self._layer(layer_id)["paint"][name] = value

    def get_layout_property(self, layer_id: str, name: str) -> Any:
        return self._layer(layer_id)["layout"].get(name)

    def get_paint_property(self, layer_id: str, name: str) -> Any:
        return self._layer(layer_id)["paint"].get(name)

    # Feature state

    def set_feature_state(self, source_id: str, feature_id: Any, state: Mapping[str, Any]) -> None:
        self._check_alive()
        if source_id not in self.sources:
            raise KeyError(f"Source does not exist: {source_id}")
        self.feature_state.setdefault((source_id, feature_id), {}).update(state)

    def get_feature_state(self, source_id: str, feature_id: Any) -> Dict[str, Any]:
        self._check_alive()
        return dict(self.feature_state.get((source_id, feature_id), {}))

    # Events

    def on(self, event: str, layer_id: str, handler: Handler) -> None:
        self._check_alive()
        self._handlers[(layer_id, event)].append(handler)

    def off(self, event: str, layer_id: str, handler: Handler) -> None:
        """Detach one registration of ``handler``; unknown handlers are ignored."""
        self._check_alive()
        handlers = self._handlers.get((layer_id, event), [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers(self, event: str, layer_id: str) -> List[Handler]:
        return list(self._handlers.get((layer_id, event), []))

    def fire(self, event: str, layer_id: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Dispatch an event to the handlers on a layer; returns how many ran."""
        self._check_alive()
        handlers = self.handlers(event, layer_id)
        for handler in handlers:
            handler(payload or {})
        return len(handlers)

    def remove(self) -> None:
        """Tear the sink down; later calls raise SinkRemovedError."""
        self._handlers.clear()
        self.removed = True
        logger.debug("🧹 Render sink removed")
