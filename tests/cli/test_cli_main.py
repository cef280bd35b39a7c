"""Tests for the epesi command-line interface."""

import json

import yaml
from typer.testing import CliRunner

from src.cli.main import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "Epesi v" in result.output


class TestInspect:
    def test_csv_table(self, tmp_path):
        data = tmp_path / "sales.csv"
        data.write_text("region,revenue\nNorth,1200\nSouth,\n")

        result = runner.invoke(app, ["inspect", str(data)])

        assert result.exit_code == 0, result.output
        assert "sales.csv (2 records)" in result.output
        assert "North" in result.output
        assert "region" in result.output

    def test_json_output(self, tmp_path):
        data = tmp_path / "orders.json"
        data.write_text(json.dumps([{"id": 1, "total": 9.5}, {"id": 2}]))

        result = runner.invoke(app, ["inspect", str(data), "--json", "-n", "1"])

        assert result.exit_code == 0, result.output
        parsed = json.loads(result.output)
        assert parsed["fields"] == ["id", "total"]
        assert parsed["row_count"] == 2
        assert parsed["sample"] == [{"id": 1, "total": 9.5}]

    def test_unreadable_file_exits_1(self, tmp_path):
        data = tmp_path / "broken.json"
        data.write_text("{not json")

        result = runner.invoke(app, ["inspect", str(data)])

        assert result.exit_code == 1
        assert "E-1001" in result.output

    def test_missing_file_is_a_usage_error(self, tmp_path):
        result = runner.invoke(app, ["inspect", str(tmp_path / "nope.csv")])
        assert result.exit_code == 2


class TestConfigCommands:
    def test_validate(self, tmp_path):
        config_file = tmp_path / "epesi.yaml"
        config_file.write_text(yaml.dump({"server": {"host": "0.0.0.0", "port": 9100}}))

        result = runner.invoke(app, ["config", "validate", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Config is valid." in result.output
        assert "0.0.0.0:9100" in result.output

    def test_validate_invalid_file(self, tmp_path):
        config_file = tmp_path / "epesi.yaml"
        config_file.write_text(yaml.dump({"generation": {"timeout": 1}}))

        result = runner.invoke(app, ["config", "validate", "--config", str(config_file)])

        assert result.exit_code == 1
        assert "Config validation failed" in result.output

    def test_show(self, tmp_path):
        config_file = tmp_path / "epesi.yaml"
        config_file.write_text(yaml.dump({"generation": {"model": "claude-x"}}))

        result = runner.invoke(app, ["--config", str(config_file), "config", "show"])

        assert result.exit_code == 0
        assert "model: claude-x" in result.output
        assert "port: 8000" in result.output

    def test_show_without_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 1
        assert "No config file found." in result.output
