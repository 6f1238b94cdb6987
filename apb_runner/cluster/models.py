"""Cluster models for the APB runner.

This module defines cluster connection settings, namespace and pod state,
and the exceptions raised by failed kubectl calls.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClusterConfig(BaseModel):
    """Settings needed to reach the cluster and run APB pods in it."""

    model_config = ConfigDict(frozen=True)

    kubeconfig_path: Optional[str] = Field(None, description="Path to kubeconfig file")
    kubernetes_context: Optional[str] = Field(
        None, description="Kubernetes context to use"
    )
    pull_policy: str = Field("IfNotPresent", description="Image pull policy for APB pods")
    sandbox_role: str = Field(
        "edit", description="ClusterRole granted to the APB sandbox"
    )
    command_timeout_seconds: int = Field(
        60, description="Timeout for a single kubectl command"
    )


class NamespacePhase(str, Enum):
    """Lifecycle phases of a Kubernetes namespace."""

    ACTIVE = "Active"
    TERMINATING = "Terminating"
    UNKNOWN = "Unknown"


class PodPhase(str, Enum):
    """Lifecycle phases of a Kubernetes pod."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class NamespaceState(BaseModel):
    """Observed state of a namespace."""

    name: str = Field(..., description="Namespace name")
    exists: bool = Field(..., description="Whether the namespace exists")
    phase: NamespacePhase = Field(NamespacePhase.UNKNOWN, description="Lifecycle phase")

    @property
    def is_deleted(self) -> bool:
        """Check if the namespace is gone or going away."""
        return not self.exists or self.phase == NamespacePhase.TERMINATING

    @classmethod
    def from_manifest(cls, manifest: Dict[str, Any]) -> "NamespaceState":
        """Build the state from a `kubectl get namespace -o json` document."""
        raw_phase = manifest.get("status", {}).get("phase", NamespacePhase.UNKNOWN.value)
        try:
            phase = NamespacePhase(raw_phase)
        except ValueError:
            phase = NamespacePhase.UNKNOWN

        return cls(
            name=manifest.get("metadata", {}).get("name", ""),
            exists=True,
            phase=phase,
        )


class KubectlError(Exception):
    """Base exception for kubectl-related errors."""

    def __init__(self, message: str, error_code: str = "KUBECTL_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class KubectlNotFoundError(KubectlError):
    """Raised when kubectl executable is not found."""

    def __init__(self, message: str = "kubectl executable not found in PATH"):
        super().__init__(message, "KUBECTL_NOT_FOUND")


class KubectlExecutionError(KubectlError):
    """Raised when kubectl command execution fails."""

    def __init__(self, message: str, exit_code: int, stderr: Optional[str] = None, command: Optional[str] = None):
        super().__init__(message, "KUBECTL_EXECUTION_ERROR")
        self.details = {
            "exit_code": exit_code,
            "stderr": stderr,
            "command": command,
        }


class KubectlTimeoutError(KubectlError):
    """Raised when kubectl command times out."""

    def __init__(self, message: str, timeout_seconds: float, command: Optional[str] = None):
        super().__init__(message, "KUBECTL_TIMEOUT_ERROR")
        self.details = {
            "timeout_seconds": timeout_seconds,
            "command": command,
        }


class KubectlResourceNotFoundError(KubectlError):
    """Raised when a Kubernetes resource is not found."""

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message, "KUBECTL_RESOURCE_NOT_FOUND")
        self.details = {"command": command}


class KubectlPermissionError(KubectlError):
    """Raised when kubectl lacks permissions for an operation."""

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message, "KUBECTL_PERMISSION_ERROR")
        self.details = {"command": command}
