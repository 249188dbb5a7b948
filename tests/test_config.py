"""
Unit tests for configuration loading and validation.
"""

import json
import os
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from capturepipe.config import ConfigError, load_settings

from conftest import build_settings


def _config_dict(tmp_path: Path) -> dict:
    return {
        "media": {"resolution": "640x480", "fps": 25, "duration": 4},
        "transfer": {
            "host": "ftp.example.com",
            "username": "user",
            "password": "pw",
            "upload_dir": "/in",
            "max_retries": 2,
            "retry_interval": 1,
        },
        "storage": {
            "output_dir": str(tmp_path / "out"),
            "artifact_path": str(tmp_path / "out" / "video.mp4"),
            "capture_dir": str(tmp_path / "out" / "captures"),
            "manifest_path": str(tmp_path / "out" / "metadata.csv"),
        },
        "pipeline": {"capture_interval": 2},
    }


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("CAPTUREPIPE_"):
            monkeypatch.delenv(key)


class TestLoadSettings:
    """Tests for load_settings."""

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(_config_dict(tmp_path)))

        settings = load_settings(path)

        assert settings.media.resolution == "640x480"
        assert settings.transfer.port == 21
        assert settings.transfer.max_retries == 2
        assert settings.transfer.connect_timeout == 5.0
        assert settings.transfer.use_tls is True
        assert settings.storage.capture_dir == tmp_path / "out" / "captures"

    def test_loads_json(self, tmp_path):
        path = tmp_path / "configuration.json"
        path.write_text(json.dumps(_config_dict(tmp_path)))

        settings = load_settings(path)

        assert settings.transfer.host == "ftp.example.com"

    def test_missing_file_raises_config_error(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read"):
            load_settings(tmp_path / "absent.yaml")

    def test_malformed_yaml_raises_config_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("transfer: [unclosed")

        with pytest.raises(ConfigError, match="Malformed"):
            load_settings(path)

    def test_non_mapping_raises_config_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    def test_zero_retries_rejected(self, tmp_path):
        data = _config_dict(tmp_path)
        data["transfer"]["max_retries"] = 0
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data))

        with pytest.raises(ConfigError, match="max_retries"):
            load_settings(path)

    def test_empty_path_rejected(self, tmp_path):
        data = _config_dict(tmp_path)
        data["storage"]["manifest_path"] = ""
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data))

        with pytest.raises(ConfigError, match="manifest_path"):
            load_settings(path)

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(_config_dict(tmp_path)))
        monkeypatch.setenv("CAPTUREPIPE_TRANSFER__PASSWORD", "from-env")

        settings = load_settings(path)

        assert settings.transfer.password == "from-env"
        assert settings.transfer.username == "user"


class TestSettings:
    """Tests for derived settings and validators."""

    def test_bad_resolution_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            build_settings(tmp_path, media={"resolution": "big"})

    def test_pacing_and_linger_default_to_interval_and_duration(self, tmp_path):
        settings = build_settings(
            tmp_path,
            media={"duration": 7},
            pipeline={"capture_interval": 3, "upload_pacing": None, "linger": None},
        )

        assert settings.upload_pacing == 3.0
        assert settings.linger == 7.0

    def test_explicit_pacing_and_linger(self, tmp_path):
        settings = build_settings(tmp_path, pipeline={"upload_pacing": 0.5, "linger": 0})

        assert settings.upload_pacing == 0.5
        assert settings.linger == 0

    def test_log_level_normalized(self, tmp_path):
        settings = build_settings(tmp_path, logging={"level": "warning"})

        assert settings.logging.level == "WARNING"

    def test_settings_are_frozen(self, tmp_path):
        settings = build_settings(tmp_path)

        with pytest.raises(ValidationError):
            settings.media = None
