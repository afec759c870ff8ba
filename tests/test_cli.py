"""Tests for the daxbridge CLI."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from daxbridge.cli import commands
from daxbridge.connectors.adomd import TabularBuffer
from daxbridge.errors import ProcessNotFound

runner = CliRunner()


@pytest.fixture
def connected(monkeypatch, make_connector):
    conn = make_connector()
    monkeypatch.setattr(commands, "_connect", lambda config, verbose: conn)
    return conn


class TestDiscover:
    def test_prints_connection_string(self, connected, engine_port):
        result = runner.invoke(commands.app, ["discover"])
        assert result.exit_code == 0
        assert f"DataSource=localhost:{engine_port}" in result.output
        assert "pid 4242" in result.output

    def test_engine_not_running(self, monkeypatch):
        def _fail(config, verbose):
            raise ProcessNotFound("msmdsrv.exe")

        monkeypatch.setattr(commands, "_connect", _fail)
        result = runner.invoke(commands.app, ["discover"])
        assert result.exit_code == 1
        assert "ProcessNotFound" in result.output


class TestQuery:
    def test_prints_rows(self, engine, connected):
        engine.results["EVALUATE t"] = TabularBuffer(columns=["Name"], rows=[["Oslo"], ["Bergen"]])
        result = runner.invoke(commands.app, ["query", "-q", "EVALUATE t"])
        assert result.exit_code == 0
        assert "Oslo" in result.output
        assert "2 rows" in result.output

    def test_reads_query_file(self, engine, connected, tmp_path):
        engine.results["EVALUATE t"] = TabularBuffer(columns=["Name"], rows=[["Oslo"]])
        path = tmp_path / "q.dax"
        path.write_text("EVALUATE t")
        result = runner.invoke(commands.app, ["query", "-f", str(path)])
        assert result.exit_code == 0
        assert "Oslo" in result.output

    def test_missing_query(self, connected):
        result = runner.invoke(commands.app, ["query"])
        assert result.exit_code == 2

    def test_rejected_query(self, connected):
        result = runner.invoke(commands.app, ["query", "-q", "EVALUATE nope"])
        assert result.exit_code == 1
        assert "QueryExecutionFailed" in result.output


class TestScalarAndEvaluate:
    def test_scalar_reports_failure(self, connected):
        result = runner.invoke(commands.app, ["scalar", "EVALUATE t"])
        assert result.exit_code == 1
        assert "Scalar execution failed" in result.output

    def test_evaluate(self, engine, connected):
        engine.results['EVALUATE ROW("measure_result", 1+1)'] = TabularBuffer(
            columns=["[measure_result]"], rows=[[2]]
        )
        result = runner.invoke(commands.app, ["evaluate", "1+1"])
        assert result.exit_code == 0
        assert "2" in result.output


class TestMeasures:
    def test_lists_measures(self, engine, connected):
        engine.results["SELECT [ID], [Name] FROM $SYSTEM.TMSCHEMA_TABLES"] = TabularBuffer(
            columns=["ID", "Name"], rows=[[1, "fact"]]
        )
        engine.results["SELECT [TableID], [Name], [Expression] FROM $SYSTEM.TMSCHEMA_MEASURES"] = TabularBuffer(
            columns=["TableID", "Name", "Expression"], rows=[[1, "NumItems", "COUNTROWS(fact)"]]
        )
        result = runner.invoke(commands.app, ["measures"])
        assert result.exit_code == 0
        assert "NumItems" in result.output
        assert "1 measures in 1 tables" in result.output


class TestInitAndStatus:
    def test_init_writes_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        result = runner.invoke(commands.app, ["init", "-c", str(path)])
        assert result.exit_code == 0
        assert path.exists()

    def test_init_keeps_existing(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("engine:\n  process_name: other.exe\n")
        result = runner.invoke(commands.app, ["init", "-c", str(path)], input="n\n")
        assert result.exit_code == 0
        assert "other.exe" in path.read_text()

    def test_status(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("engine:\n  process_name: other.exe\n")
        result = runner.invoke(commands.app, ["status", "-c", str(path)])
        assert result.exit_code == 0
        assert "other.exe" in result.output


class TestInvalidConfig:
    def test_unknown_strategy_exits_cleanly(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("discovery:\n  strategy: registry\n")
        result = runner.invoke(commands.app, ["discover", "-c", str(path)])
        assert result.exit_code == 1
        assert "Invalid config" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_malformed_yaml_exits_cleanly(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("engine: [unclosed\n")
        result = runner.invoke(commands.app, ["query", "-q", "EVALUATE t", "-c", str(path)])
        assert result.exit_code == 1
        assert "Invalid config" in result.output

    def test_status_reports_invalid_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("discovery:\n  address_field: first\n")
        result = runner.invoke(commands.app, ["status", "-c", str(path)])
        assert result.exit_code == 1
        assert "Invalid config" in result.output
