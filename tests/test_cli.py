"""Tests for the migration-map command line interface."""

import json

import pytest
import yaml
from click.testing import CliRunner
from loguru import logger

from map_ops.run_pipeline import ConfigOverride, cli


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # setup_logging points loguru at the runner's temporary stderr
    logger.remove()


@pytest.fixture
def project(tmp_path, dataset_files):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump({"project_name": "CLI Test", "output": {"directory": "out"}}),
        encoding="utf-8",
    )
    return config_path


def test_build_writes_scene_and_map(project):
    result = CliRunner().invoke(cli, ["--config", str(project), "build", "--mode", "routes"])

    assert result.exit_code == 0, result.output
    out_dir = project.parent / "out"
    scene = json.loads((out_dir / "scene.json").read_text(encoding="utf-8"))
    assert scene["mode"] == "routes"
    assert scene["dropped_routes"] == 2
    assert len(scene["line_layer"]["features"]) == 3
    assert (out_dir / "migration_map.html").exists()


def test_build_honours_overrides_and_no_html(project, tmp_path):
    target = tmp_path / "custom"
    result = CliRunner().invoke(
        cli,
        [
            "--config",
            str(project),
            "--set",
            "scale.classes=3",
            "build",
            "--scale-policy",
            "interpolate",
            "--output-dir",
            str(target),
            "--no-html",
        ],
    )

    assert result.exit_code == 0, result.output
    scene = json.loads((target / "scene.json").read_text(encoding="utf-8"))
    assert scene["scale"]["policy"] == "interpolate"
    assert scene["mode"] == "arrivals"
    assert not (target / "migration_map.html").exists()


def test_summary_lists_top_regions_and_dropped_routes(project):
    result = CliRunner().invoke(cli, ["--config", str(project), "summary", "--top", "2"])

    assert result.exit_code == 0, result.output
    assert "Top 2 regions by arrivals:" in result.output
    assert "   1. DE        100,000" in result.output
    assert "   2. GR         20,000" in result.output
    assert "Routes resolved: 3" in result.output
    assert "Routes dropped: 2" in result.output


def test_missing_dataset_exits_with_error(project, dataset_files):
    dataset_files["polygons"].unlink()

    result = CliRunner().invoke(cli, ["--config", str(project), "build"])

    assert result.exit_code == 1
    assert "polygons" in result.output
    assert not (project.parent / "out" / "scene.json").exists()


def test_invalid_override_is_rejected(project):
    result = CliRunner().invoke(cli, ["--config", str(project), "--set", "noequals", "build"])
    assert result.exit_code == 2


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("scale.classes=7", ("scale.classes", 7)),
        ("view.dimmed_opacity=0.2", ("view.dimmed_opacity", 0.2)),
        ("map.prefer=true", ("map.prefer", True)),
        ("scale.policy=fixed", ("scale.policy", "fixed")),
        ("project_name=a=b", ("project_name", "a=b")),
        ("scale.breakpoints=[0, 10, 100]", ("scale.breakpoints", [0, 10, 100])),
        ("project_name=", ("project_name", "")),
    ],
)
def test_config_override_parsing(raw, expected):
    assert ConfigOverride().convert(raw, None, None) == expected


def test_verbose_run_writes_log_file(project, tmp_path):
    log_file = tmp_path / "run.log"

    result = CliRunner().invoke(
        cli, ["--config", str(project), "--verbose", "--log-file", str(log_file), "summary"]
    )

    assert result.exit_code == 0, result.output
    logger.remove()
    text = log_file.read_text(encoding="utf-8")
    assert "Logging at DEBUG level" in text
    assert "Scene ready" in text


def test_invalid_override_key_is_rejected(project):
    result = CliRunner().invoke(cli, ["--config", str(project), "--set", "=7", "build"])
    assert result.exit_code == 2
