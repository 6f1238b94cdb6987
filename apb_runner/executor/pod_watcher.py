"""Pod watcher for running APB actions."""

import asyncio
from typing import Any, Dict

import structlog

from ..cluster.kubectl_client import KubectlClient
from ..cluster.models import KubectlError, PodPhase
from ..models import ObservationError


class PodWatcher:
    """Polls an APB pod until it reaches a terminal phase."""

    def __init__(
        self,
        client: KubectlClient,
        poll_interval_seconds: float = 5.0,
        timeout_seconds: float = 3600.0,
        max_poll_errors: int = 3,
    ):
        """Initialize the pod watcher.

        Args:
            client: kubectl client used to read pod state
            poll_interval_seconds: Delay between two polls
            timeout_seconds: Give up after this long without a terminal phase
            max_poll_errors: Consecutive failed polls tolerated before giving up
        """
        self.client = client
        self.poll_interval_seconds = poll_interval_seconds
        self.timeout_seconds = timeout_seconds
        self.max_poll_errors = max_poll_errors
        self.logger = structlog.get_logger(self.__class__.__name__)

    def _parse_phase(self, pod: Dict[str, Any]) -> PodPhase:
        raw_phase = pod.get("status", {}).get("phase", PodPhase.UNKNOWN.value)
        try:
            return PodPhase(raw_phase)
        except ValueError:
            return PodPhase.UNKNOWN

    def _failure_reason(self, pod: Dict[str, Any]) -> str:
        status = pod.get("status", {})
        for container_status in status.get("containerStatuses", []):
            terminated = container_status.get("state", {}).get("terminated")
            if terminated:
                return (
                    f"container {container_status.get('name', 'apb')} exited with "
                    f"code {terminated.get('exitCode')} ({terminated.get('reason', 'Error')})"
                )
        return status.get("reason") or status.get("message") or "unknown reason"

    async def _collect_output(self, pod_name: str, namespace: str) -> str:
        try:
            return await self.client.get_pod_logs(pod_name, namespace)
        except KubectlError as e:
            self.logger.warning(
                "Failed to read APB pod output",
                pod_name=pod_name,
                namespace=namespace,
                error=str(e),
            )
            return ""

    async def watch(self, pod_name: str, namespace: str) -> str:
        """Wait until an APB pod finishes.

        Args:
            pod_name: Name of the APB pod
            namespace: Namespace the pod runs in

        Returns:
            Output of the pod

        Raises:
            ObservationError: If the pod failed, timed out or could not be polled
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        poll_errors = 0

        self.logger.info("Watching APB pod", pod_name=pod_name, namespace=namespace)

        while True:
            try:
                pod = await self.client.get_pod(pod_name, namespace)
            except KubectlError as e:
                poll_errors += 1
                self.logger.warning(
                    "Failed to poll APB pod",
                    pod_name=pod_name,
                    namespace=namespace,
                    poll_errors=poll_errors,
                    error=str(e),
                )
                if poll_errors >= self.max_poll_errors:
                    raise ObservationError(
                        f"Lost track of pod {pod_name} after {poll_errors} failed polls: {e.message}",
                        pod_name=pod_name,
                        namespace=namespace,
                    ) from e
            else:
                poll_errors = 0
                phase = self._parse_phase(pod)
                self.logger.debug("APB pod phase", pod_name=pod_name, phase=phase.value)

                if phase == PodPhase.SUCCEEDED:
                    return await self._collect_output(pod_name, namespace)

                if phase == PodPhase.FAILED:
                    output = await self._collect_output(pod_name, namespace)
                    raise ObservationError(
                        f"Pod {pod_name} failed: {self._failure_reason(pod)}",
                        pod_name=pod_name,
                        namespace=namespace,
                        output=output,
                    )

            if loop.time() - started >= self.timeout_seconds:
                raise ObservationError(
                    f"Timed out after {self.timeout_seconds} seconds waiting for pod {pod_name}",
                    pod_name=pod_name,
                    namespace=namespace,
                )

            await asyncio.sleep(self.poll_interval_seconds)
