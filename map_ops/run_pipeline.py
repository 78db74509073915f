#!/usr/bin/env python3
"""
Migration Map Pipeline with Click CLI

This script orchestrates the migration map workflow: load the polygon,
statistics and flow datasets together, join them into a scene, and export
the scene as JSON plus an interactive HTML map.

Usage:
    migration-map build                         # Build with config.yaml defaults
    migration-map build --mode routes           # Start the map in route view
    migration-map build --scale-policy interpolate
    migration-map --set scale.classes=7 build   # Override any config value
    migration-map summary                       # Top regions and dropped routes

    # Logging:
    migration-map --verbose build               # Enable DEBUG level logging
    migration-map --trace build                 # Enable TRACE level logging
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Optional, Tuple

import click
import yaml
from loguru import logger

from migration_map.context import MapContext
from migration_map.errors import DatasetLoadError
from migration_map.loaders import load_datasets
from migration_map.render import render_folium_map, write_scene_json
from migration_map.scale import SCALE_POLICIES
from migration_map.scene import build_scene
from migration_map.view_state import ViewMode

from .config_loader import Config

DETAILED_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
COMPACT_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


class ConfigOverride(click.ParamType):
    """``KEY=VALUE`` config override; the value is read as a YAML scalar or list."""

    name = "config_override"

    def convert(self, value, param, ctx) -> Tuple[str, Any]:
        key, sep, raw = value.partition("=")
        if not sep or not key.strip():
            self.fail(f"Invalid format: {value}. Use KEY=VALUE", param, ctx)

        try:
            parsed = yaml.safe_load(raw) if raw.strip() else raw
        except yaml.YAMLError:
            parsed = raw
        return key.strip(), parsed


def _load_config(ctx: click.Context) -> Config:
    obj = ctx.obj or {}
    try:
        config = Config(obj.get("config_file"))
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Configuration error: {e}")
        logger.info("💡 Make sure config.yaml exists and is valid")
        raise click.ClickException(str(e))

    for key, value in obj.get("overrides", ()):
        config.apply_override(key, value)

    logger.info(f"📋 Project: {config.get('project_name')}")
    config.print_config_summary()
    return config


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to config.yaml",
)
@click.option(
    "--set",
    "overrides",
    multiple=True,
    type=ConfigOverride(),
    help="Set config values using dot notation (e.g., scale.classes=7)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option(
    "--trace", is_flag=True, help="Enable TRACE level logging for deep debugging (maximum detail)"
)
@click.option("--log-file", type=str, help="Also log to specified file")
@click.pass_context
def cli(ctx, config_file, overrides, verbose, trace, log_file):
    """
    Migration Map Pipeline

    Join country polygons, arrival totals and migration routes into a map
    scene and export it.
    """
    setup_logging(verbose=verbose, enable_trace=trace, log_file=log_file)
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["overrides"] = overrides


@cli.command()
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in ViewMode]),
    help="View mode of the exported map (default: view.initial_mode)",
)
@click.option("--scale-policy", type=click.Choice(SCALE_POLICIES), help="Override scale.policy")
@click.option("--output-dir", type=click.Path(file_okay=False), help="Override output.directory")
@click.option("--no-html", is_flag=True, help="Only write the scene JSON")
@click.pass_context
def build(ctx, mode: Optional[str], scale_policy: Optional[str], output_dir: Optional[str], no_html: bool):
    """Load datasets, build the scene and export it."""
    config = _load_config(ctx)

    settings = config.scene_settings()
    if scale_policy:
        settings.scale_policy = scale_policy
    initial_mode = ViewMode(mode) if mode else config.initial_mode()

    with MapContext(
        settings=settings,
        navigation={"v": initial_mode.value},
        statistic_opacity=float(config.get("view.statistic_opacity")),
        dimmed_opacity=float(config.get("view.dimmed_opacity")),
    ) as map_ctx:
        try:
            scene = asyncio.run(map_ctx.load(config.dataset_sources()))
        except DatasetLoadError as e:
            handle_critical_error(e, f"Loading {e.dataset} dataset")
            raise click.ClickException(str(e))

    if scene is None:
        raise click.ClickException("Map context was torn down before the scene was applied")

    out_dir = Path(output_dir) if output_dir else config.get_output_dir()
    write_scene_json(scene, out_dir / config.get("output.scene_json"))
    if not no_html:
        render_folium_map(
            scene,
            out_dir / config.get("output.map_html"),
            tiles=config.get("map.tiles"),
            zoom_start=int(config.get("map.zoom_start")),
        )

    logger.success("✅ Migration map pipeline completed successfully!")


@cli.command()
@click.option("--top", "top_n", type=int, help="Number of regions to list (default: view.top_n)")
@click.pass_context
def summary(ctx, top_n: Optional[int]):
    """Print the top regions by arrivals and the route resolution report."""
    config = _load_config(ctx)
    settings = config.scene_settings()
    if top_n is not None:
        settings.top_n = top_n

    try:
        bundle = asyncio.run(load_datasets(config.dataset_sources()))
    except DatasetLoadError as e:
        handle_critical_error(e, f"Loading {e.dataset} dataset")
        raise click.ClickException(str(e))

    scene = build_scene(bundle, config.initial_mode(), settings)

    click.echo(f"Top {settings.top_n} regions by arrivals:")
    for position, (code, value) in enumerate(scene.legend["top"], 1):
        click.echo(f"  {position:>2}. {code:<4} {value:>12,.0f}")
    click.echo(f"Routes resolved: {len(scene.routes)}")
    click.echo(f"Routes dropped: {scene.dropped_routes}")


def setup_logging(verbose: bool = False, enable_trace: bool = False, log_file: Optional[str] = None) -> None:
    """
    Configure loguru sinks for a pipeline run.

    Args:
        verbose: DEBUG level with source locations
        enable_trace: TRACE level with backtraces and variable diagnosis
        log_file: Optional file that receives a rotated copy of the log
    """
    if enable_trace:
        log_level = "TRACE"
    elif verbose:
        log_level = "DEBUG"
    else:
        log_level = "INFO"

    logger.remove()
    logger.add(
        sys.stderr,
        format=COMPACT_FORMAT if log_level == "INFO" else DETAILED_FORMAT,
        level=log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )
    if log_file:
        logger.add(log_file, level=log_level, format=FILE_FORMAT, rotation="10 MB", retention="7 days")
        logger.info(f"📄 Also logging to file: {log_file}")

    os.environ["LOGURU_LEVEL"] = log_level
    logger.debug(f"🔧 Logging at {log_level} level")


def handle_critical_error(error: Exception, context: str = "") -> None:
    """
    Log a fatal pipeline error and the chain of exceptions behind it.

    Args:
        error: The exception that stopped the run
        context: Pipeline step that failed
    """
    enable_trace = os.environ.get("LOGURU_LEVEL", "INFO") == "TRACE"

    logger.critical(f"💥 CRITICAL ERROR: {context}")
    logger.critical(f"Exception: {type(error).__name__}: {error}")
    cause = error.__cause__
    while cause is not None:
        logger.critical(f"Caused by: {type(cause).__name__}: {cause}")
        cause = cause.__cause__

    if enable_trace:
        logger.opt(exception=error).trace("Full traceback:")
    else:
        logger.info("💡 For detailed debugging, run with --trace flag")


if __name__ == "__main__":
    cli()
