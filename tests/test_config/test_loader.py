"""Tests for camera_capture.config.loader."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from camera_capture.config.loader import (
    _dataclass_to_dict,
    _merge_dataclass,
    config_from_dict,
    load_config,
    save_config,
)
from camera_capture.config.schema import (
    AcquisitionConfig,
    AcquisitionMode,
    CameraCaptureConfig,
)


class TestDataclassToDict:
    """Tests for _dataclass_to_dict."""

    def test_flat_dataclass(self) -> None:
        result = _dataclass_to_dict(AcquisitionConfig(exposure_us=50.0, width=8, height=4))
        assert result == {
            "mode": "Continuous", "exposure_us": 50.0, "width": 8, "height": 4,
        }

    def test_nested_dataclass(self) -> None:
        result = _dataclass_to_dict(CameraCaptureConfig())
        assert result["capture"]["frame_count"] == 300
        assert result["acquisition"]["mode"] == "Continuous"


class TestMergeDataclass:
    """Tests for _merge_dataclass."""

    def test_flat_update_returns_copy(self) -> None:
        cfg = AcquisitionConfig()
        merged = _merge_dataclass(cfg, {"width": 640})
        assert merged.width == 640
        assert cfg.width == 1920

    def test_enum_coercion(self) -> None:
        merged = _merge_dataclass(AcquisitionConfig(), {"mode": "SingleFrame"})
        assert merged.mode is AcquisitionMode.SINGLE_FRAME

    def test_bad_enum_value(self) -> None:
        with pytest.raises(ValueError):
            _merge_dataclass(AcquisitionConfig(), {"mode": "Burst"})

    def test_int_to_float(self) -> None:
        merged = _merge_dataclass(AcquisitionConfig(), {"exposure_us": 100})
        assert isinstance(merged.exposure_us, float)

    def test_unknown_keys_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        merged = _merge_dataclass(AcquisitionConfig(), {"gain": 3})
        assert merged == AcquisitionConfig()
        assert "gain" in caplog.text

    def test_nested_update(self) -> None:
        cfg = config_from_dict({
            "acquisition": {"exposure_us": 1000.0},
            "capture": {"frame_count": 10},
        })
        assert cfg.acquisition.exposure_us == 1000.0
        assert cfg.acquisition.width == 1920
        assert cfg.capture.frame_count == 10
        assert cfg.capture.timeout_ms == 1000


class TestLoadConfig:
    """Tests for load_config."""

    def test_none_returns_defaults(self) -> None:
        assert load_config(None) == CameraCaptureConfig()

    def test_missing_file_raises(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/config.yaml")

    def test_load_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "capture.yaml"
        path.write_text(yaml.dump({
            "device": {"camera_type": "simulated"},
            "acquisition": {"mode": "SingleFrame", "width": 640},
        }))
        cfg = load_config(path)
        assert cfg.device.camera_type == "simulated"
        assert cfg.acquisition.mode is AcquisitionMode.SINGLE_FRAME
        assert cfg.acquisition.width == 640
        assert cfg.acquisition.height == 1080

    def test_empty_yaml_returns_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == CameraCaptureConfig()

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)


class TestSaveConfig:
    """Tests for save_config."""

    def test_roundtrip(self, tmp_path: Path) -> None:
        original = config_from_dict({
            "acquisition": {"mode": "SingleFrame", "exposure_us": 750.0},
            "output": {"output_dir": str(tmp_path / "runs")},
        })
        path = tmp_path / "out.yaml"
        save_config(original, path)
        assert load_config(path) == original

    def test_creates_parent_dirs(self, tmp_path: Path) -> None:
        path = tmp_path / "subdir" / "deep" / "config.yaml"
        save_config(CameraCaptureConfig(), path)
        assert path.exists()

    def test_output_is_plain_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "out.yaml"
        save_config(CameraCaptureConfig(), path)
        data = yaml.safe_load(path.read_text())
        assert data["acquisition"]["mode"] == "Continuous"
