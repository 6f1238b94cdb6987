"""Collaborator interfaces consumed by the action orchestrator."""

from typing import Any, Dict, Optional, Protocol

from ..cluster.models import ClusterConfig
from ..models import InstanceContext, ServiceInstanceSpec
from .models import ExecutionAttempt, ExecutionContext


class NamespaceChecker(Protocol):
    """Protocol for namespace state queries."""

    async def is_namespace_deleted(self, name: str) -> bool:
        """
        Check if a namespace is absent or terminating.

        Raises:
            ClusterQueryError: If the state could not be determined
        """
        ...


class SandboxManager(Protocol):
    """Protocol for sandbox identity teardown."""

    async def destroy_apb_sandbox(
        self,
        execution_context: Optional[ExecutionContext],
        cluster_config: ClusterConfig,
    ) -> None:
        """
        Destroy the sandbox created for an execution context.

        A None context is a no-op.
        """
        ...


class WorkloadExecutor(Protocol):
    """Protocol for APB pod submission."""

    async def execute(
        self,
        action: str,
        cluster_config: ClusterConfig,
        spec: ServiceInstanceSpec,
        context: InstanceContext,
        parameters: Dict[str, Any],
    ) -> ExecutionAttempt:
        """
        Submit a pod running the action.

        Returns:
            ExecutionAttempt carrying the context whenever a pod name exists
        """
        ...


class WorkloadObserver(Protocol):
    """Protocol for watching an APB pod to completion."""

    async def watch(self, pod_name: str, namespace: str) -> str:
        """
        Wait until the pod finishes.

        Returns:
            Pod output

        Raises:
            ObservationError: On failure, timeout or watch disruption
        """
        ...


class MetricsSink(Protocol):
    """Protocol for fire-and-forget action metrics."""

    def action_started(self, action: str) -> None:
        ...

    def sandbox_cleanup_failed(self, action: str) -> None:
        ...
