"""Tests for settings loading."""

import json
from unittest.mock import patch

from diskdive.config import Settings, load_settings


class TestWorkerCount:
    def test_scales_with_cpus(self):
        settings = Settings()
        with patch("diskdive.config.os.cpu_count", return_value=8):
            assert settings.worker_count(100) == 32

    def test_lower_bound(self):
        with patch("diskdive.config.os.cpu_count", return_value=1):
            assert Settings().worker_count(100) == 16

    def test_upper_bound(self):
        with patch("diskdive.config.os.cpu_count", return_value=64):
            assert Settings().worker_count(1000) == 128

    def test_never_more_than_pending(self):
        with patch("diskdive.config.os.cpu_count", return_value=8):
            assert Settings().worker_count(3) == 3
            assert Settings().worker_count(0) == 1


class TestLoadSettings:
    def test_defaults_without_file(self, tmp_path):
        settings = load_settings(tmp_path / "missing.json")
        assert settings.max_entries == 30
        assert settings.min_large_file_size == 100 * 1024**2

    def test_reads_file(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"max_entries": 5, "use_du": False}))

        settings = load_settings(config)

        assert settings.max_entries == 5
        assert settings.use_du is False
        assert settings.max_large_files == 30

    def test_invalid_file_falls_back(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text("{broken")
        assert load_settings(config).max_entries == 30

    def test_invalid_values_fall_back(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"max_entries": 0}))
        assert load_settings(config).max_entries == 30

    def test_environment_override(self, tmp_path, monkeypatch):
        config = tmp_path / "custom.json"
        config.write_text(json.dumps({"overview_batch": 7}))
        monkeypatch.setenv("DISKDIVE_CONFIG", str(config))

        assert load_settings().overview_batch == 7
