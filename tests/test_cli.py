"""Tests for the command line interface."""

import json
from unittest.mock import AsyncMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from apb_runner.cli import create_app, load_instance
from apb_runner.executor.models import ActionOutcome
from apb_runner.models import ObservationError

runner = CliRunner()


def parse_output(stdout: str) -> dict:
    """Parse the JSON document printed last, skipping any log lines."""
    lines = stdout.splitlines()
    start = max(i for i, line in enumerate(lines) if line == "{")
    return json.loads("\n".join(lines[start:]))


@pytest.fixture
def instance_file(tmp_path):
    path = tmp_path / "instance.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "id": "instance-1",
                "spec": {
                    "id": "spec-1",
                    "fq_name": "dh-nginx-apb",
                    "image": "nginx:latest",
                    "description": "Nginx test APB",
                },
                "context": {"platform": "kubernetes", "namespace": "demo"},
                "parameters": {"replicas": 2},
            }
        )
    )
    return path


@pytest.fixture(autouse=True)
def mock_kubectl(monkeypatch):
    monkeypatch.setenv("MOCK_KUBECTL_COMMANDS", "true")
    monkeypatch.setenv("APB_POLL_INTERVAL_SECONDS", "0")


class TestLoadInstance:
    """Test service instance loading."""

    def test_load_yaml(self, instance_file):
        instance = load_instance(instance_file)

        assert instance.spec.image == "nginx:latest"
        assert instance.context.namespace == "demo"
        assert instance.parameters == {"replicas": 2}

    def test_load_json(self, tmp_path):
        path = tmp_path / "instance.json"
        path.write_text(json.dumps({"id": "i-1", "spec": {"id": "s-1"}}))

        instance = load_instance(path)

        assert instance.spec.image == ""


class TestCommands:
    """Test CLI commands against mocked kubectl."""

    def test_deprovision_success(self, instance_file):
        result = runner.invoke(create_app(), ["deprovision", "--instance", str(instance_file)])

        assert result.exit_code == 0
        output = parse_output(result.stdout)
        assert output["status"] == "success"
        assert output["action"] == "deprovision"
        assert output["pod_name"].startswith("apb-")

    def test_run_reports_failure(self, instance_file):
        outcome = ActionOutcome(
            "deprovision",
            pod_name="pod-123",
            error=ObservationError("watch timeout", pod_name="pod-123", namespace="demo"),
        )
        with patch(
            "apb_runner.executor.orchestrator.ActionOrchestrator.run_action",
            new=AsyncMock(return_value=outcome),
        ):
            result = runner.invoke(
                create_app(), ["run", "deprovision", "--instance", str(instance_file)]
            )

        assert result.exit_code == 1
        output = parse_output(result.stdout)
        assert output["pod_name"] == "pod-123"
        assert output["error_code"] == "OBSERVATION_ERROR"

    def test_missing_instance_file(self, tmp_path):
        result = runner.invoke(
            create_app(), ["deprovision", "--instance", str(tmp_path / "missing.yaml")]
        )

        assert result.exit_code == 2

    def test_namespace_status(self):
        result = runner.invoke(create_app(), ["namespace-status", "demo"])

        assert result.exit_code == 0
        output = parse_output(result.stdout)
        assert output == {
            "name": "demo",
            "exists": True,
            "phase": "Active",
            "deleted": False,
        }
