"""Tests for CLI interface."""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from diskdive.cli import app

from conftest import make_file

runner = CliRunner()


@pytest.fixture(autouse=True)
def test_settings(settings):
    with patch("diskdive.cli.load_settings", return_value=settings):
        yield settings


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "tree"
    make_file(root / "small.bin", 10_000)
    make_file(root / "dir" / "big.bin", 60_000)
    return root


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "diskdive version" in result.stdout

    def test_version_short_flag(self):
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert "diskdive version" in result.stdout


class TestHelp:
    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "scan" in result.stdout
        assert "size" in result.stdout
        assert "browse" in result.stdout

    def test_scan_help(self):
        result = runner.invoke(app, ["scan", "--help"])
        assert result.exit_code == 0
        assert "--json" in result.stdout


class TestScan:
    def test_json_output(self, tree):
        result = runner.invoke(app, ["scan", str(tree), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total_size"] == 70_000
        assert [e["name"] for e in data["entries"]] == ["dir", "small.bin"]
        assert [f["name"] for f in data["large_files"]] == ["big.bin"]

    def test_json_limit(self, tree):
        result = runner.invoke(app, ["scan", str(tree), "--json", "--limit", "1"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert len(data["entries"]) == 1
        assert data["total_size"] == 70_000

    def test_table_output(self, tree):
        result = runner.invoke(app, ["scan", str(tree)])
        assert result.exit_code == 0
        assert "small.bin" in result.stdout

    def test_missing_directory(self, tmp_path):
        result = runner.invoke(app, ["scan", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "Error" in result.stdout


class TestSize:
    def test_measures_directory(self, tree):
        result = runner.invoke(app, ["size", str(tree)])
        assert result.exit_code == 0
        assert "68.4 KB" in result.stdout

    def test_missing_directory(self, tmp_path):
        result = runner.invoke(app, ["size", str(tmp_path / "missing")])
        assert result.exit_code == 1


class TestCache:
    def test_clear(self, test_settings, tree):
        runner.invoke(app, ["size", str(tree)])

        result = runner.invoke(app, ["cache", "clear"])

        assert result.exit_code == 0
        assert "Removed 1 cache file(s)" in result.stdout


class TestBrowse:
    def test_launches_tui_for_path(self, tree, test_settings):
        with patch("diskdive.tui.run_tui") as mock_run:
            result = runner.invoke(app, ["browse", str(tree)])

        assert result.exit_code == 0
        mock_run.assert_called_once_with(path=str(tree), settings=test_settings)

    def test_bare_invocation_opens_overview(self, test_settings):
        with patch("diskdive.tui.run_tui") as mock_run:
            result = runner.invoke(app, [])

        assert result.exit_code == 0
        mock_run.assert_called_once_with(path=None, settings=test_settings)

    def test_rejects_non_directory(self, tree):
        with patch("diskdive.tui.run_tui") as mock_run:
            result = runner.invoke(app, ["browse", str(tree / "small.bin")])

        assert result.exit_code == 1
        mock_run.assert_not_called()
