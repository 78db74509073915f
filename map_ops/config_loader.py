"""
Configuration Loader for the Migration Map Pipeline

This module provides a centralized way to load and access configuration
settings from a config.yaml file.

Usage:
    from map_ops import Config

    config = Config()
    arrivals_json = config.get_input_path('statistics')
    settings = config.scene_settings()
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

from migration_map.loaders import DatasetSources
from migration_map.scene import SceneSettings
from migration_map.view_state import ViewMode

PACKAGED_CONFIG = Path(__file__).parent / "config.yaml"


class Config:
    """Configuration manager for the migration map pipeline."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "project_name": "Migration Flow Map",
        "input_files": {
            "polygons": "data/eu_countries.geojson",
            "statistics": "data/arrivals_2025.json",
            "flows": "data/routes_2025.json",
        },
        "output": {
            "directory": "html",
            "scene_json": "scene.json",
            "map_html": "migration_map.html",
        },
        "scale": {
            "policy": "quantile",
            "classes": 5,
            "palette": ["#fde0dd", "#fcae91", "#fb6a4a"],
            "breakpoints": [0, 1000, 10000, 50000, 100000, 250000],
        },
        "view": {
            "initial_mode": "arrivals",
            "statistic_opacity": 0.75,
            "dimmed_opacity": 0.15,
            "top_n": 10,
        },
        "map": {
            "tiles": "CartoDB Positron",
            "zoom_start": 4,
        },
        "codes": {"aliases": {}},
        "fallback_coordinates": {},
    }

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable MIGRATION_MAP_CONFIG_PATH
                        2. config.yaml in current directory
                        3. the config.yaml shipped with map_ops
            project_root_override: Base directory for relative input/output paths
        """
        if config_file is None:
            env_config = os.environ.get("MIGRATION_MAP_CONFIG_PATH")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            elif PACKAGED_CONFIG.exists():
                config_file = PACKAGED_CONFIG
                logger.debug("Using packaged map_ops/config.yaml")
            else:
                raise FileNotFoundError(
                    "No config.yaml found. Check current directory or set MIGRATION_MAP_CONFIG_PATH"
                )

        self.config_path = Path(config_file).resolve()
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        elif self.config_path == PACKAGED_CONFIG.resolve():
            self.project_root = Path.cwd()
        else:
            self.project_root = self.config_path.parent

        logger.debug(f"Loading config from: {self.config_path}")
        with open(self.config_path, "r") as f:
            self.data = yaml.safe_load(f) or {}

        if not isinstance(self.data, dict):
            raise ValueError(f"Config file must contain a mapping: {self.config_path}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation with intelligent defaults.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key_path.split(".")

        value: Any = self.data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                value = None
                break

        if value is None:
            value = self.DEFAULTS
            for key in keys:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    return default

        return value

    def apply_override(self, key_path: str, value: Any) -> None:
        """Set a value using dot notation, creating intermediate sections."""
        keys = key_path.split(".")
        current = self.data
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value
        logger.debug(f"Added override: {key_path} = {value}")

    def _resolve(self, relative: Union[str, Path]) -> Union[str, Path]:
        text = str(relative)
        if text.startswith(("http://", "https://")):
            return text
        path = Path(text)
        return path if path.is_absolute() else self.project_root / path

    def get_input_path(self, dataset_key: str) -> Union[str, Path]:
        """
        Full path (or URL) of an input dataset.

        Args:
            dataset_key: One of 'polygons', 'statistics', 'flows'
        """
        relative = self.get(f"input_files.{dataset_key}")
        if not relative:
            raise ValueError(f"Input file key '{dataset_key}' not found in config: input_files")
        return self._resolve(relative)

    def dataset_sources(self) -> DatasetSources:
        return DatasetSources(
            polygons=self.get_input_path("polygons"),
            statistics=self.get_input_path("statistics"),
            flows=self.get_input_path("flows"),
        )

    def get_output_dir(self) -> Path:
        return Path(self._resolve(self.get("output.directory")))

    def get_output_path(self, output_key: str) -> Path:
        """Path of an output file ('scene_json' or 'map_html')."""
        filename = self.get(f"output.{output_key}")
        if not filename or output_key == "directory":
            raise ValueError(f"Unknown output file key: {output_key}")
        return self.get_output_dir() / filename

    def initial_mode(self) -> ViewMode:
        return ViewMode.from_query({"v": self.get("view.initial_mode")})

    def scene_settings(self) -> SceneSettings:
        """SceneSettings populated from the scale, view, codes and fallback sections."""
        palette = self.get("scale.palette")
        if isinstance(palette, list):
            palette = tuple(palette)
        return SceneSettings(
            scale_policy=str(self.get("scale.policy")),
            scale_classes=int(self.get("scale.classes")),
            palette=palette,
            breakpoints=self.get("scale.breakpoints"),
            aliases=dict(self.get("codes.aliases", {}) or {}),
            fallback_coordinates=dict(self.get("fallback_coordinates", {}) or {}),
            top_n=int(self.get("view.top_n")),
        )

    def print_config_summary(self) -> None:
        """Print a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Project: {self.get('project_name', 'Unknown')}")
        logger.debug(f"Config file: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        logger.debug("📊 Input Files:")
        for key in ("polygons", "statistics", "flows"):
            source = self.get_input_path(key)
            if isinstance(source, Path):
                status = "✅" if source.exists() else "❌"
            else:
                status = "🌐"
            logger.debug(f"  {status} {key}: {source}")

        logger.debug(f"🎨 Scale policy: {self.get('scale.policy')}")
        logger.debug(f"📁 Output directory: {self.get_output_dir()}")
