"""Service instance models for the APB runner.

This module defines the caller-owned service instance data handed to the
orchestrator and the error taxonomy shared by every runner component.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceInstanceSpec(BaseModel):
    """Spec of the APB backing a service instance."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="APB spec ID")
    fq_name: str = Field("", description="Fully qualified APB name")
    image: str = Field("", description="APB image reference")
    description: str = Field("", description="Human readable description")


class InstanceContext(BaseModel):
    """Platform context the service instance lives in."""

    model_config = ConfigDict(frozen=True)

    platform: str = Field("kubernetes", description="Target platform")
    namespace: str = Field("", description="Namespace the instance lives in")


class ServiceInstance(BaseModel):
    """A provisioned service instance an action is run against."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Service instance ID")
    spec: ServiceInstanceSpec = Field(..., description="APB spec of the instance")
    context: InstanceContext = Field(
        default_factory=InstanceContext, description="Instance context"
    )
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Parameters passed to the APB"
    )


class ApbError(Exception):
    """Base exception for APB action errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "APB_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigurationError(ApbError):
    """Raised when required service instance fields are missing."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, "CONFIGURATION_ERROR")
        self.details = {"field": field}


class ClusterQueryError(ApbError):
    """Raised when the state of a namespace could not be determined."""

    def __init__(self, message: str, namespace: str):
        super().__init__(message, "CLUSTER_QUERY_ERROR")
        self.details = {"namespace": namespace}


class ExecutionError(ApbError):
    """Raised when an APB pod could not be submitted."""

    def __init__(
        self,
        message: str,
        pod_name: Optional[str] = None,
        namespace: Optional[str] = None,
    ):
        super().__init__(message, "EXECUTION_ERROR")
        self.details = {"pod_name": pod_name, "namespace": namespace}


class ObservationError(ApbError):
    """Raised when an APB pod could not be watched to a clean finish."""

    def __init__(
        self,
        message: str,
        pod_name: str,
        namespace: str,
        output: str = "",
    ):
        super().__init__(message, "OBSERVATION_ERROR")
        self.output = output
        self.details = {"pod_name": pod_name, "namespace": namespace}


class CleanupError(ApbError):
    """Raised when an APB sandbox could not be torn down."""

    def __init__(self, message: str, pod_name: str, namespace: str):
        super().__init__(message, "CLEANUP_ERROR")
        self.details = {"pod_name": pod_name, "namespace": namespace}
