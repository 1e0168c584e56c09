from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from posture_tracking.config import (
    clear_config_cache,
    configured_posture_model,
    default_project_config,
    find_project_root,
)
from posture_tracking.timespan import date_to_ms


@pytest.fixture
def isolated_root(monkeypatch, tmp_path: Path) -> Path:
    for name in (
        "POSTURE_TRACKING_CONFIG_FILE",
        "POSTURE_TRACKING_ACTIVITY_GAP_MS",
        "POSTURE_TRACKING_MIN_DAY_LENGTH",
        "POSTURE_TRACKING_MOVEMENT_WINDOW",
        "POSTURE_TRACKING_WORKERS",
        "POSTURE_TRACKING_HISTOGRAM_BINS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("POSTURE_TRACKING_PROJECT_ROOT", str(tmp_path))
    clear_config_cache()
    yield tmp_path
    clear_config_cache()


def test_defaults_without_any_config(isolated_root: Path) -> None:
    model = default_project_config()

    assert find_project_root() == isolated_root.resolve()
    assert model.segmentation.activity_gap_ms == 10_000
    assert model.segmentation.min_day_length == 0
    assert model.features.movement_window == 10
    assert model.histogram.bins == 10
    assert model.histogram.posture_limits is None


def test_env_override_for_activity_gap(monkeypatch, isolated_root: Path) -> None:
    monkeypatch.setenv("POSTURE_TRACKING_ACTIVITY_GAP_MS", "5000")
    monkeypatch.setenv("POSTURE_TRACKING_WORKERS", "2")
    clear_config_cache()

    preset = configured_posture_model()

    assert preset.segmentation_config.activity_gap_ms == 5000
    assert preset.feature_config.workers == 2


def test_pyproject_tool_table_is_merged(isolated_root: Path) -> None:
    (isolated_root / "pyproject.toml").write_text(
        "\n".join(
            [
                "[tool.posture_tracking.features]",
                "movement_window = 4",
                "",
                "[tool.posture_tracking.segmentation]",
                "min_day_length = 30",
            ]
        ),
        encoding="utf-8",
    )
    clear_config_cache()

    model = default_project_config()

    assert model.features.movement_window == 4
    assert model.segmentation.min_day_length == 30


def test_external_yaml_config_file_override(monkeypatch, isolated_root: Path) -> None:
    cfg = isolated_root / "posture.yaml"
    cfg.write_text(
        "\n".join(
            [
                "name: Study cohort",
                "segmentation:",
                "  valid_from: '2020-01-01'",
                "  valid_until: '2030-01-01'",
                "histogram:",
                "  bins: 4",
                "  posture_limits:",
                "    - null",
                "    - [-1.0, 1.0]",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("POSTURE_TRACKING_CONFIG_FILE", str(cfg))
    clear_config_cache()

    preset = configured_posture_model()

    assert preset.name == "Study cohort"
    assert preset.histogram_bins == 4
    assert preset.posture_limits == (None, (-1.0, 1.0))
    assert preset.segmentation_config.valid_from_ms == date_to_ms(date(2020, 1, 1))
    assert preset.segmentation_config.valid_until_ms == date_to_ms(date(2030, 1, 1))


def test_default_yaml_location_is_used(isolated_root: Path) -> None:
    (isolated_root / "config").mkdir()
    (isolated_root / "config" / "posture_tracking.yaml").write_text(
        "histogram:\n  bins: 6\n", encoding="utf-8"
    )
    clear_config_cache()

    assert default_project_config().histogram.bins == 6


def test_missing_config_file_is_an_error(monkeypatch, isolated_root: Path) -> None:
    monkeypatch.setenv("POSTURE_TRACKING_CONFIG_FILE", str(isolated_root / "absent.yaml"))
    clear_config_cache()

    with pytest.raises(FileNotFoundError):
        default_project_config()


def test_invalid_values_raise_value_error(monkeypatch, isolated_root: Path) -> None:
    monkeypatch.setenv("POSTURE_TRACKING_MOVEMENT_WINDOW", "0")
    clear_config_cache()

    with pytest.raises(ValueError, match="Invalid posture_tracking config"):
        default_project_config()


def test_inverted_validity_window_is_rejected(monkeypatch, isolated_root: Path) -> None:
    cfg = isolated_root / "bad.yaml"
    cfg.write_text(
        "segmentation:\n  valid_from: '2030-01-01'\n  valid_until: '2020-01-01'\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("POSTURE_TRACKING_CONFIG_FILE", str(cfg))
    clear_config_cache()

    with pytest.raises(ValueError):
        default_project_config()
