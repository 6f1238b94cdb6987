"""Tests for watching APB pods."""

import json
from unittest.mock import AsyncMock, Mock, patch

import pytest

from apb_runner.cluster.kubectl_client import KubectlClient
from apb_runner.cluster.models import KubectlExecutionError
from apb_runner.executor.pod_watcher import PodWatcher
from apb_runner.models import ObservationError


def pod(phase: str, **status) -> dict:
    return {"metadata": {"name": "apb-1"}, "status": {"phase": phase, **status}}


@pytest.fixture
def client() -> Mock:
    client = Mock(spec=KubectlClient)
    client.get_pod = AsyncMock()
    client.get_pod_logs = AsyncMock(return_value="PLAY RECAP ok=3")
    return client


def make_watcher(client, **kwargs) -> PodWatcher:
    kwargs.setdefault("poll_interval_seconds", 0)
    return PodWatcher(client, **kwargs)


class TestWatch:
    """Test pod watching."""

    @pytest.mark.asyncio
    async def test_waits_for_success(self, client):
        client.get_pod.side_effect = [pod("Pending"), pod("Running"), pod("Succeeded")]
        watcher = make_watcher(client)

        output = await watcher.watch("apb-1", "demo")

        assert output == "PLAY RECAP ok=3"
        assert client.get_pod.await_count == 3
        client.get_pod_logs.assert_awaited_once_with("apb-1", "demo")

    @pytest.mark.asyncio
    async def test_failed_pod_raises_with_output(self, client):
        client.get_pod.return_value = pod(
            "Failed",
            containerStatuses=[
                {"name": "apb", "state": {"terminated": {"exitCode": 2, "reason": "Error"}}}
            ],
        )
        watcher = make_watcher(client)

        with pytest.raises(ObservationError) as exc_info:
            await watcher.watch("apb-1", "demo")

        assert exc_info.value.output == "PLAY RECAP ok=3"
        assert "exited with code 2" in exc_info.value.message
        assert exc_info.value.details == {"pod_name": "apb-1", "namespace": "demo"}

    @pytest.mark.asyncio
    async def test_transient_poll_errors_are_tolerated(self, client):
        client.get_pod.side_effect = [
            KubectlExecutionError("connection reset", exit_code=1),
            pod("Running"),
            KubectlExecutionError("connection reset", exit_code=1),
            pod("Succeeded"),
        ]
        watcher = make_watcher(client, max_poll_errors=2)

        assert await watcher.watch("apb-1", "demo") == "PLAY RECAP ok=3"

    @pytest.mark.asyncio
    async def test_repeated_poll_errors_raise(self, client):
        client.get_pod.side_effect = KubectlExecutionError("connection refused", exit_code=1)
        watcher = make_watcher(client, max_poll_errors=3)

        with pytest.raises(ObservationError):
            await watcher.watch("apb-1", "demo")

        assert client.get_pod.await_count == 3

    @pytest.mark.asyncio
    async def test_timeout_raises(self, client):
        client.get_pod.return_value = pod("Running")
        watcher = make_watcher(client, poll_interval_seconds=0.01, timeout_seconds=0.05)

        with pytest.raises(ObservationError) as exc_info:
            await watcher.watch("apb-1", "demo")

        assert "Timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_log_failure_yields_empty_output(self, client):
        client.get_pod.return_value = pod("Succeeded")
        client.get_pod_logs.side_effect = KubectlExecutionError("no logs", exit_code=1)
        watcher = make_watcher(client)

        assert await watcher.watch("apb-1", "demo") == ""


class TestWatchOverKubectl:
    """Test watching with kubectl output that is not clean UTF-8 or JSON."""

    @pytest.fixture
    def kubectl(self, cluster_config) -> KubectlClient:
        client = KubectlClient(cluster_config=cluster_config)
        client._kubectl_verified = True
        return client

    @pytest.mark.asyncio
    async def test_undecodable_logs_after_success(self, kubectl, mock_subprocess):
        """Test that binary log output still yields the success output."""
        processes = [
            mock_subprocess(stdout=json.dumps(pod("Succeeded"))),
            mock_subprocess(stdout=b"ok \xff\xfe done"),
        ]
        watcher = make_watcher(kubectl)

        with patch("asyncio.create_subprocess_exec", side_effect=processes):
            output = await watcher.watch("apb-1", "demo")

        assert output.startswith("ok ")
        assert "\ufffd" in output

    @pytest.mark.asyncio
    async def test_malformed_pod_json_counts_as_poll_error(self, kubectl, mock_subprocess):
        """Test that garbage from `get pod` uses up the poll error budget."""
        watcher = make_watcher(kubectl, max_poll_errors=2)

        with patch(
            "asyncio.create_subprocess_exec",
            side_effect=lambda *args, **kwargs: mock_subprocess(stdout="{not json"),
        ) as mock_exec:
            with pytest.raises(ObservationError) as exc_info:
                await watcher.watch("apb-1", "demo")

        assert mock_exec.call_count == 2
        assert exc_info.value.details == {"pod_name": "apb-1", "namespace": "demo"}

    @pytest.mark.asyncio
    async def test_malformed_pod_json_is_tolerated_once(self, kubectl, mock_subprocess):
        processes = [
            mock_subprocess(stdout=""),
            mock_subprocess(stdout=json.dumps(pod("Succeeded"))),
            mock_subprocess(stdout="PLAY RECAP ok=1"),
        ]
        watcher = make_watcher(kubectl, max_poll_errors=2)

        with patch("asyncio.create_subprocess_exec", side_effect=processes):
            assert await watcher.watch("apb-1", "demo") == "PLAY RECAP ok=1"
