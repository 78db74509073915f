"""Shared fixtures: a tiny polygon set, arrival totals and routes."""

import json

import pytest


def square(min_lon, min_lat, max_lon, max_lat):
    return [
        [
            [min_lon, min_lat],
            [max_lon, min_lat],
            [max_lon, max_lat],
            [min_lon, max_lat],
            [min_lon, min_lat],
        ]
    ]


@pytest.fixture
def polygons():
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"ISO2": "DE", "NAME_EN": "Germany"},
                "geometry": {"type": "Polygon", "coordinates": square(6, 47, 15, 55)},
            },
            {
                "type": "Feature",
                "properties": {"CNTR_ID": "EL", "CNTR_NAME": "Elláda"},
                "geometry": {"type": "Polygon", "coordinates": square(20, 35, 28, 41)},
            },
            {
                "type": "Feature",
                "properties": {"ISO_A2": "hu", "name": "Hungary"},
                "geometry": {
                    "type": "MultiPolygon",
                    "coordinates": [square(16, 45.5, 20, 48.5), square(20, 46, 23, 48)],
                },
            },
            {
                "type": "Feature",
                "id": "XX",
                "properties": {"NAME": "Nowhere"},
                "geometry": {"type": "Polygon", "coordinates": []},
            },
        ],
    }


@pytest.fixture
def statistics():
    return {"totalsByCountry": {"DE": 100000, "GR": 20000, "HU": 0, "IT": 5000}}


@pytest.fixture
def flows():
    return {
        "routes": [
            {"from": "UA", "to": "DE", "count": 250000, "path": "Eastern land route"},
            {"from": "SY", "to": "EL", "count": 40000, "path": "Eastern Mediterranean"},
            {"from": "ZZ", "to": "DE", "count": 500},
            {"from": "de", "to": "HU", "count": "1200"},
            {"from": "AF", "to": "XX", "count": 800},
        ]
    }


@pytest.fixture
def dataset_files(tmp_path, polygons, statistics, flows):
    """The three datasets written as JSON files under tmp_path/data."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    paths = {}
    for name, payload, filename in (
        ("polygons", polygons, "eu_countries.geojson"),
        ("statistics", statistics, "arrivals_2025.json"),
        ("flows", flows, "routes_2025.json"),
    ):
        path = data_dir / filename
        path.write_text(json.dumps(payload), encoding="utf-8")
        paths[name] = path
    return paths
