"""Tests for the two-mode view state manager."""

import pytest

from migration_map.sink import LayerSink
from migration_map.view_state import LayerIds, RegionDetail, RouteDetail, ViewMode, ViewStateManager

LAYERS = LayerIds()


@pytest.fixture
def sink():
    sink = LayerSink()
    sink.add_source("countries", {"type": "FeatureCollection", "features": []})
    sink.add_source("routes", {"type": "FeatureCollection", "features": []})
    for layer_id, layer_type, source in (
        (LAYERS.statistic_fill, "fill", "countries"),
        (LAYERS.statistic_outline, "line", "countries"),
        (LAYERS.flow_line, "line", "routes"),
        (LAYERS.flow_arrows, "symbol", "routes"),
    ):
        sink.add_layer({"id": layer_id, "type": layer_type, "source": source})
    return sink


def region_click(code="DE", value=1234):
    return {
        "features": [{"properties": {"ISO2": code, "NAME_EN": "Germany", "value": value}}],
        "lng_lat": (10.0, 51.0),
    }


def route_hover():
    return {
        "features": [{"properties": {"from": "UA", "to": "DE", "count": 250000, "path": "East"}}],
        "lng_lat": (20.0, 50.0),
    }


@pytest.mark.parametrize(
    "query, expected",
    [
        ("v=routes", ViewMode.FLOW),
        ("?v=routes&lang=hu", ViewMode.FLOW),
        ("v=arrivals", ViewMode.STATISTIC),
        ("v=bogus", ViewMode.STATISTIC),
        ("", ViewMode.STATISTIC),
        (None, ViewMode.STATISTIC),
        ({"v": "routes"}, ViewMode.FLOW),
        ({"v": ["routes"]}, ViewMode.FLOW),
        ({}, ViewMode.STATISTIC),
    ],
)
def test_mode_from_navigation_state(query, expected):
    assert ViewMode.from_query(query) is expected


def test_apply_statistic_mode(sink):
    view = ViewStateManager(sink, ViewMode.STATISTIC)
    view.apply()

    assert sink.get_paint_property(LAYERS.statistic_fill, "fill-opacity") == 0.75
    assert sink.get_layout_property(LAYERS.statistic_fill, "visibility") == "visible"
    assert sink.get_layout_property(LAYERS.flow_line, "visibility") == "none"
    assert sink.get_layout_property(LAYERS.flow_arrows, "visibility") == "none"


def test_switch_to_flow_dims_statistic_layer_and_shows_routes(sink):
    view = ViewStateManager(sink, ViewMode.STATISTIC)
    view.switch_to(ViewMode.FLOW)

    assert view.mode is ViewMode.FLOW
    assert sink.get_paint_property(LAYERS.statistic_fill, "fill-opacity") == 0.15
    assert sink.get_layout_property(LAYERS.statistic_fill, "visibility") == "visible"
    assert sink.get_layout_property(LAYERS.flow_line, "visibility") == "visible"
    assert sink.get_layout_property(LAYERS.flow_arrows, "visibility") == "visible"


def test_apply_skips_missing_layers():
    sink = LayerSink()
    view = ViewStateManager(sink, ViewMode.FLOW)
    view.switch_to(ViewMode.STATISTIC)
    view.bind_handlers()
    assert sink.layers == {}


def test_repeated_switching_keeps_one_handler_per_event(sink):
    view = ViewStateManager(sink, ViewMode.STATISTIC)
    view.bind_handlers()

    for _ in range(2):
        view.switch_to(ViewMode.FLOW)
        view.bind_handlers()
        view.switch_to(ViewMode.STATISTIC)
        view.bind_handlers()

    assert len(sink.handlers("click", LAYERS.statistic_fill)) == 1
    assert len(sink.handlers("mouseenter", LAYERS.statistic_fill)) == 1
    assert len(sink.handlers("mouseleave", LAYERS.statistic_fill)) == 1
    assert len(sink.handlers("mousemove", LAYERS.flow_line)) == 1
    assert len(sink.handlers("mouseleave", LAYERS.flow_line)) == 1
    assert sink.fire("click", LAYERS.statistic_fill, region_click()) == 1


def test_region_click_sets_detail_and_clears_route_detail(sink):
    view = ViewStateManager(sink, ViewMode.FLOW)
    view.bind_handlers()
    sink.fire("mousemove", LAYERS.flow_line, route_hover())
    assert view.route_detail == RouteDetail("UA", "DE", 250000.0, "East", (20.0, 50.0))

    sink.fire("click", LAYERS.statistic_fill, region_click())

    assert view.region_detail == RegionDetail("Germany", "DE", 1234.0, (10.0, 51.0))
    assert view.route_detail is None


def test_route_hover_is_ignored_in_statistic_mode(sink):
    view = ViewStateManager(sink, ViewMode.STATISTIC)
    view.bind_handlers()
    sink.fire("mousemove", LAYERS.flow_line, route_hover())
    assert view.route_detail is None


def test_route_leave_clears_detail_and_cursor_follows_hover(sink):
    view = ViewStateManager(sink, ViewMode.FLOW)
    view.bind_handlers()
    sink.fire("mousemove", LAYERS.flow_line, route_hover())
    sink.fire("mouseleave", LAYERS.flow_line)
    assert view.route_detail is None

    sink.fire("mouseenter", LAYERS.statistic_fill)
    assert view.cursor == "pointer"
    sink.fire("mouseleave", LAYERS.statistic_fill)
    assert view.cursor == ""


def test_leaving_a_mode_clears_its_detail(sink):
    view = ViewStateManager(sink, ViewMode.FLOW)
    view.bind_handlers()
    sink.fire("mousemove", LAYERS.flow_line, route_hover())

    view.switch_to(ViewMode.STATISTIC)
    assert view.route_detail is None

    sink.fire("click", LAYERS.statistic_fill, region_click())
    assert view.region_detail is not None
    view.switch_to(ViewMode.FLOW)
    assert view.region_detail is None


def test_mode_listeners_fire_only_on_change(sink):
    seen = []
    view = ViewStateManager(sink, ViewMode.STATISTIC)
    view.add_mode_listener(seen.append)
    view.add_mode_listener(seen.append)

    view.switch_to(ViewMode.STATISTIC)
    view.switch_to(ViewMode.FLOW)
    view.switch_to(ViewMode.FLOW)

    assert seen == [ViewMode.FLOW]


def test_unbind_handlers_detaches_everything(sink):
    view = ViewStateManager(sink, ViewMode.STATISTIC)
    view.bind_handlers()
    view.unbind_handlers()
    assert sink.fire("click", LAYERS.statistic_fill, region_click()) == 0


@pytest.mark.parametrize("junk", ["junk", ["ISO2", "DE"]])
def test_region_click_with_non_object_properties(sink, junk):
    view = ViewStateManager(sink, ViewMode.STATISTIC)
    view.bind_handlers()

    sink.fire("click", LAYERS.statistic_fill, {"features": [{"id": "AT", "properties": junk}]})

    assert view.region_detail == RegionDetail("Unknown", "AT", 0.0, None)


def test_events_without_feature_objects_are_ignored(sink):
    view = ViewStateManager(sink, ViewMode.FLOW)
    view.bind_handlers()

    sink.fire("click", LAYERS.statistic_fill, {"features": ["junk"]})
    sink.fire("mousemove", LAYERS.flow_line, {"features": []})

    assert view.region_detail is None
    assert view.route_detail is None
