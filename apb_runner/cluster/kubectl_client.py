"""kubectl client for APB runner cluster access.

This module provides an async wrapper around the kubectl CLI used by every
component that needs to read or change cluster state.
"""

import asyncio
import json
import shutil
from typing import Any, Dict, List, Optional

import structlog

from .models import (
    ClusterConfig,
    KubectlError,
    KubectlExecutionError,
    KubectlNotFoundError,
    KubectlPermissionError,
    KubectlResourceNotFoundError,
    KubectlTimeoutError,
    NamespaceState,
)


class KubectlClient:
    """Async kubectl wrapper bound to a single cluster configuration."""

    def __init__(
        self,
        cluster_config: Optional[ClusterConfig] = None,
        mock_commands: bool = False,
    ):
        """Initialize the kubectl client.

        Args:
            cluster_config: Cluster connection settings
            mock_commands: Use mock commands for testing
        """
        self.cluster_config = cluster_config or ClusterConfig()
        self.mock_commands = mock_commands

        self.logger = structlog.get_logger(self.__class__.__name__)

        # Track if kubectl availability has been verified
        self._kubectl_verified = mock_commands

    def _build_command(self, args: List[str]) -> List[str]:
        cmd_args = ["kubectl", *args]

        if self.cluster_config.kubeconfig_path:
            cmd_args.extend(["--kubeconfig", self.cluster_config.kubeconfig_path])

        if self.cluster_config.kubernetes_context:
            cmd_args.extend(["--context", self.cluster_config.kubernetes_context])

        return cmd_args

    async def run(
        self,
        args: List[str],
        input_data: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Run a kubectl command and return its standard output.

        Args:
            args: kubectl arguments, without the leading "kubectl"
            input_data: Optional data written to the command's stdin
            timeout: Command timeout in seconds, defaults to the cluster config

        Returns:
            Decoded standard output

        Raises:
            KubectlError: If kubectl is missing, times out or exits non-zero
        """
        if self.mock_commands:
            return self._mock_response(args)

        if not self._kubectl_verified:
            if not shutil.which("kubectl"):
                raise KubectlNotFoundError()
            self._kubectl_verified = True

        timeout = timeout or self.cluster_config.command_timeout_seconds
        cmd_args = self._build_command(args)
        command = " ".join(cmd_args)

        self.logger.debug("Executing kubectl command", command=command)

        process = await asyncio.create_subprocess_exec(
            *cmd_args,
            stdin=asyncio.subprocess.PIPE if input_data is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(
                    input_data.encode() if input_data is not None else None
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise KubectlTimeoutError(
                f"kubectl command timed out after {timeout} seconds",
                timeout_seconds=timeout,
                command=command,
            )

        if process.returncode != 0:
            stderr_str = stderr.decode(errors="replace") if stderr else ""
            raise self._classify_error(stderr_str, process.returncode, command)

        return stdout.decode(errors="replace") if stdout else ""

    def _classify_error(self, stderr: str, exit_code: int, command: str) -> KubectlError:
        """Map kubectl stderr to the matching exception.

        Only the API server's ``Error from server (NotFound)`` response counts
        as a missing resource. Client-side failures such as an unknown context
        also mention "not found" and must stay execution errors.
        """
        lowered = stderr.lower()
        if "(notfound)" in lowered:
            return KubectlResourceNotFoundError(
                f"Resource not found: {stderr.strip()}", command=command
            )
        elif "forbidden" in lowered or "unauthorized" in lowered:
            return KubectlPermissionError(
                f"Insufficient permissions: {stderr.strip()}", command=command
            )

        lines = stderr.strip().split("\n")
        return KubectlExecutionError(
            lines[0] if lines and lines[0] else "Unknown error",
            exit_code=exit_code,
            stderr=stderr,
            command=command,
        )

    async def get_namespace(self, name: str) -> NamespaceState:
        """Look up a namespace.

        A namespace the API server answers with ``(NotFound)`` is returned
        with ``exists=False``; every other failure propagates.
        """
        try:
            output = await self.run(["get", "namespace", name, "--output", "json"])
        except KubectlResourceNotFoundError:
            self.logger.debug("Namespace not found", namespace=name)
            return NamespaceState(name=name, exists=False)

        return NamespaceState.from_manifest(self._parse_json(output, "namespace", name))

    async def apply_manifest(self, manifest: Dict[str, Any]) -> str:
        """Create the resource described by a manifest."""
        return await self.run(["create", "-f", "-"], input_data=json.dumps(manifest))

    async def get_pod(self, name: str, namespace: str) -> Dict[str, Any]:
        """Get the current manifest of a pod."""
        output = await self.run(
            ["get", "pod", name, "--namespace", namespace, "--output", "json"]
        )
        return self._parse_json(output, "pod", name)

    def _parse_json(self, output: str, kind: str, name: str) -> Dict[str, Any]:
        """Parse a ``--output json`` document, failing like any other kubectl error."""
        try:
            document = json.loads(output)
        except ValueError as e:
            raise KubectlExecutionError(
                f"Invalid JSON returned for {kind} {name}: {e}",
                exit_code=0,
                command=f"kubectl get {kind} {name} --output json",
            ) from e

        if not isinstance(document, dict):
            raise KubectlExecutionError(
                f"Unexpected JSON document returned for {kind} {name}",
                exit_code=0,
                command=f"kubectl get {kind} {name} --output json",
            )
        return document

    async def get_pod_logs(self, name: str, namespace: str) -> str:
        """Get the log output of a pod."""
        return await self.run(["logs", name, "--namespace", namespace])

    async def delete_resource(self, kind: str, name: str, namespace: str) -> None:
        """Delete a namespaced resource, ignoring resources that are already gone."""
        await self.run(
            ["delete", kind, name, "--namespace", namespace, "--ignore-not-found"]
        )

    def _mock_response(self, args: List[str]) -> str:
        """Return a canned response for testing."""
        if args[:2] == ["get", "namespace"]:
            return json.dumps(
                {"metadata": {"name": args[2]}, "status": {"phase": "Active"}}
            )
        if args[:2] == ["get", "pod"]:
            namespace = args[args.index("--namespace") + 1]
            return json.dumps(
                {
                    "metadata": {"name": args[2], "namespace": namespace},
                    "status": {"phase": "Succeeded"},
                }
            )
        if args[0] == "logs":
            return f"Mocked output of {args[1]}"

        return f"Mocked execution of: kubectl {' '.join(args)}"
