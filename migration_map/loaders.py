"""
Loading of the three upstream datasets.

The polygon, statistics and flow datasets are requested together and awaited
jointly. Nothing downstream runs on a partial set: any load or parse failure
raises DatasetLoadError for the pipeline run.
"""

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

import requests
from loguru import logger

from .errors import DatasetLoadError

Source = Union[str, Path]

REQUEST_TIMEOUT = 30

# dataset name -> (collection key, expected container type)
DATASET_SHAPES = {
    "polygons": ("features", list),
    "statistics": ("totalsByCountry", dict),
    "flows": ("routes", list),
}


@dataclass(frozen=True)
class DatasetSources:
    polygons: Source
    statistics: Source
    flows: Source


@dataclass(frozen=True)
class DatasetBundle:
    """Parsed datasets, exposed through read-only top-level views."""

    polygons: Mapping[str, Any]
    statistics: Mapping[str, Any]
    flows: Mapping[str, Any]

    @classmethod
    def from_mappings(
        cls,
        polygons: Optional[Mapping[str, Any]] = None,
        statistics: Optional[Mapping[str, Any]] = None,
        flows: Optional[Mapping[str, Any]] = None,
    ) -> "DatasetBundle":
        return cls(
            polygons=MappingProxyType(dict(polygons or {"type": "FeatureCollection", "features": []})),
            statistics=MappingProxyType(dict(statistics or {"totalsByCountry": {}})),
            flows=MappingProxyType(dict(flows or {"routes": []})),
        )


def _is_url(source: Source) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


def read_json_source(source: Source) -> Any:
    """Read and parse JSON from a local path or an http(s) URL."""
    if _is_url(source):
        response = requests.get(str(source), timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()
    with open(source, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_dataset(name: str, data: Any, source: Optional[str] = None) -> Dict[str, Any]:
    """
    Check the top-level shape of a parsed dataset.

    Raises:
        DatasetLoadError: If the payload is not a JSON object or its collection
            key holds the wrong kind of value
    """
    if not isinstance(data, dict):
        raise DatasetLoadError(name, source, f"expected a JSON object, got {type(data).__name__}")
    key, expected = DATASET_SHAPES[name]
    value = data.get(key)
    if value is not None and not isinstance(value, expected):
        raise DatasetLoadError(
            name, source, f"'{key}' must be a {expected.__name__}, got {type(value).__name__}"
        )
    return data


async def load_dataset(name: str, source: Source) -> Dict[str, Any]:
    logger.debug(f"  📥 Loading {name} from {source}")
    try:
        data = await asyncio.to_thread(read_json_source, source)
    except (OSError, ValueError, requests.exceptions.RequestException) as e:
        raise DatasetLoadError(name, str(source), str(e)) from e
    return validate_dataset(name, data, str(source))


async def load_datasets(sources: DatasetSources) -> DatasetBundle:
    """
    Load all three datasets concurrently.

    Args:
        sources: Paths or URLs of the polygon, statistics and flow datasets

    Returns:
        DatasetBundle once every dataset has arrived

    Raises:
        DatasetLoadError: If any dataset fails to load or parse
    """
    logger.info("📥 Loading polygon, statistics and flow datasets...")
    polygons, statistics, flows = await asyncio.gather(
        load_dataset("polygons", sources.polygons),
        load_dataset("statistics", sources.statistics),
        load_dataset("flows", sources.flows),
    )
    bundle = DatasetBundle.from_mappings(polygons, statistics, flows)
    logger.success(
        f"  ✅ Loaded {len(polygons.get('features') or []):,} polygons, "
        f"{len(statistics.get('totalsByCountry') or {}):,} statistics, "
        f"{len(flows.get('routes') or []):,} routes"
    )
    return bundle
