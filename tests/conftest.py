"""Pytest configuration and shared fixtures for APB runner tests."""

import asyncio
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from apb_runner.cluster.models import ClusterConfig
from apb_runner.executor.models import ExecutionAttempt, ExecutionContext
from apb_runner.models import InstanceContext, ServiceInstance, ServiceInstanceSpec


@pytest.fixture(scope="session")
def event_loop_policy():
    """Set the event loop policy for the test session."""
    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture
def cluster_config() -> ClusterConfig:
    """Create a cluster configuration with test defaults."""
    return ClusterConfig(
        kubeconfig_path="/tmp/test-kubeconfig",
        kubernetes_context="test-context",
        pull_policy="Always",
        sandbox_role="edit",
        command_timeout_seconds=5,
    )


def make_instance(image: str = "nginx:latest", namespace: str = "demo") -> ServiceInstance:
    """Build a service instance for tests."""
    return ServiceInstance(
        id="instance-1",
        spec=ServiceInstanceSpec(
            id="spec-1",
            fq_name="dh-nginx-apb",
            image=image,
            description="Nginx test APB",
        ),
        context=InstanceContext(namespace=namespace),
        parameters={"replicas": 2},
    )


@pytest.fixture
def instance() -> ServiceInstance:
    """Create a service instance with an image."""
    return make_instance()


def make_execution_context(pod_name: str = "pod-123", namespace: str = "demo") -> ExecutionContext:
    """Build an execution context for tests."""
    return ExecutionContext(
        pod_name=pod_name,
        namespace=namespace,
        service_account=pod_name,
        target_namespaces=[namespace],
    )


class RecordingSandboxManager:
    """Sandbox manager that records every teardown call."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.destroyed: List[Optional[ExecutionContext]] = []

    async def destroy_apb_sandbox(
        self,
        execution_context: Optional[ExecutionContext],
        cluster_config: ClusterConfig,
    ) -> None:
        self.destroyed.append(execution_context)
        if self.error is not None:
            raise self.error


class Collaborators:
    """Test doubles for everything the orchestrator talks to."""

    def __init__(self) -> None:
        self.namespace_checker = Mock()
        self.namespace_checker.is_namespace_deleted = AsyncMock(return_value=False)

        self.executor = Mock()
        self.executor.execute = AsyncMock(
            return_value=ExecutionAttempt(context=make_execution_context())
        )

        self.watcher = Mock()
        self.watcher.watch = AsyncMock(return_value="ok")

        self.metrics = Mock()
        self.sandbox_managers: List[RecordingSandboxManager] = []
        self.sandbox_error: Optional[Exception] = None

    def sandbox_manager_factory(self) -> RecordingSandboxManager:
        manager = RecordingSandboxManager(error=self.sandbox_error)
        self.sandbox_managers.append(manager)
        return manager

    @property
    def destroyed(self) -> List[Optional[ExecutionContext]]:
        return [ctx for manager in self.sandbox_managers for ctx in manager.destroyed]


@pytest.fixture
def collaborators() -> Collaborators:
    """Create orchestrator collaborators with a successful default path."""
    return Collaborators()


class MockAsyncProcess:
    """Mock async subprocess for testing kubectl calls."""

    def __init__(self, stdout: str = "", stderr: str = "", returncode: int = 0):
        self.stdout = stdout.encode() if isinstance(stdout, str) else stdout
        self.stderr = stderr.encode() if isinstance(stderr, str) else stderr
        self.returncode = returncode
        self.received_input: Optional[bytes] = None
        self.killed = False

    async def communicate(self, input: Optional[bytes] = None):
        """Mock communicate method."""
        self.received_input = input
        return self.stdout, self.stderr

    async def wait(self):
        """Mock wait method."""
        return self.returncode

    def kill(self):
        self.killed = True


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing kubectl calls."""
    return MockAsyncProcess


def namespace_manifest(name: str, phase: str) -> Dict[str, Any]:
    """Build a `kubectl get namespace -o json` document."""
    return {"metadata": {"name": name}, "status": {"phase": phase}}
