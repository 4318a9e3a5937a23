"""Tests for the metricfields check command."""

import json
import logging
import textwrap

import pytest
from click.testing import CliRunner

from metricfields.cli import cli

RECORD_MODULE = textwrap.dedent(
    """
    from typing import Annotated

    from prometheus_client import Counter, Histogram


    class Stats:
        requests: Annotated[Counter, "name=request_count,labels=[route],help='requests served'"]
        latency: Annotated[Histogram, "buckets=[0.1, 1, 10]"]
        started_at: float = 0.0


    class Broken:
        hits: Annotated[Counter, "buckets=[1, 2]"]


    class NeedsArguments:
        hits: Counter

        def __init__(self, source):
            self.source = source


    stats = Stats()
    """
)


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def record_module(tmp_path, monkeypatch, request):
    """Write an importable module with metric records and return its name."""
    name = f"records_{request.node.name}".replace("[", "_").replace("]", "_").replace("-", "_")
    (tmp_path / f"{name}.py").write_text(RECORD_MODULE)
    monkeypatch.syspath_prepend(str(tmp_path))
    return name


class TestCheckSuccess:
    """Tests for records that register cleanly."""

    def test_class_target(self, cli_runner, record_module):
        result = cli_runner.invoke(cli, ["check", f"{record_module}:Stats"])
        assert result.exit_code == 0, f"Unexpected output: {result.output}"

        data = json.loads(result.output)
        assert data["success"] is True
        assert data["data"]["record"] == "Stats"
        assert data["data"]["collectors"] == [
            {
                "field": "requests",
                "kind": "counter",
                "name": "request_count",
                "help": "requests served",
                "labels": ["route"],
            },
            {
                "field": "latency",
                "kind": "histogram",
                "name": "latency",
                "help": "",
                "labels": [],
                "buckets": [0.1, 1.0, 10.0],
            },
        ]

    def test_instance_target(self, cli_runner, record_module):
        result = cli_runner.invoke(cli, ["check", f"{record_module}:stats"])
        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        assert json.loads(result.output)["data"]["record"] == "Stats"

    def test_namespace_option(self, cli_runner, record_module):
        result = cli_runner.invoke(cli, ["check", f"{record_module}:Stats", "--namespace", "shop"])
        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        assert json.loads(result.output)["data"]["namespace"] == "shop"

    def test_config_file_buckets(self, cli_runner, record_module, tmp_path):
        config_file = tmp_path / "metricfields.toml"
        config_file.write_text("[metrics]\nnamespace = 'svc'\n")
        result = cli_runner.invoke(cli, ["check", f"{record_module}:Stats", "--config", str(config_file)])
        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        assert json.loads(result.output)["data"]["namespace"] == "svc"


class TestCheckFailure:
    """Tests for failing records and bad targets."""

    def test_registration_error_envelope(self, cli_runner, record_module):
        result = cli_runner.invoke(cli, ["check", f"{record_module}:Broken"])
        assert result.exit_code == 1

        data = json.loads(result.output)
        assert data["success"] is False
        assert data["data"]["error_type"] == "UnsupportedAttributeError"
        assert data["data"]["field"] == "hits"
        assert data["data"]["error"] == "field 'hits': unsupported attribute 'buckets' for counter"

    def test_target_without_colon(self, cli_runner):
        result = cli_runner.invoke(cli, ["check", "just_a_module"])
        assert result.exit_code == 2
        assert "MODULE:ATTRIBUTE" in result.output

    def test_missing_module(self, cli_runner):
        result = cli_runner.invoke(cli, ["check", "no_such_module_xyz:Stats"])
        assert result.exit_code == 2
        assert "cannot import" in result.output

    def test_missing_attribute(self, cli_runner, record_module):
        result = cli_runner.invoke(cli, ["check", f"{record_module}:Missing"])
        assert result.exit_code == 2
        assert "has no attribute" in result.output

    def test_class_needing_arguments(self, cli_runner, record_module):
        result = cli_runner.invoke(cli, ["check", f"{record_module}:NeedsArguments"])
        assert result.exit_code == 2
        assert not isinstance(result.exception, TypeError)
        assert "cannot instantiate 'NeedsArguments' without arguments" in result.output


class TestLogLevelOption:
    """Tests for the --log-level choice."""

    @pytest.fixture(autouse=True)
    def remove_package_handler(self):
        yield
        package_logger = logging.getLogger("metricfields")
        for handler in list(package_logger.handlers):
            package_logger.removeHandler(handler)
        package_logger.setLevel(logging.NOTSET)

    @pytest.mark.parametrize("level", ["critical", "ERROR"])
    def test_accepts_every_config_level(self, cli_runner, record_module, level):
        result = cli_runner.invoke(cli, ["check", f"{record_module}:Stats", "--log-level", level])
        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        assert json.loads(result.output)["success"] is True

    def test_rejects_unknown_level(self, cli_runner, record_module):
        result = cli_runner.invoke(cli, ["check", f"{record_module}:Stats", "--log-level", "chatty"])
        assert result.exit_code == 2
