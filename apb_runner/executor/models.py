"""Execution models for the APB runner.

This module defines where an APB action runs, the result of submitting it,
and the outcome reported back to the caller.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models import ApbError, ExecutionError


class ExecutionContext(BaseModel):
    """Identifies the pod an APB action runs in."""

    pod_name: str = Field(..., description="APB pod name")
    namespace: str = Field(..., description="Namespace the pod runs in")
    service_account: str = Field(..., description="Sandbox service account name")
    target_namespaces: List[str] = Field(
        default_factory=list, description="Namespaces the sandbox was granted access to"
    )


class ExecutionAttempt:
    """Result of submitting an APB pod.

    The context is set as soon as a pod name exists, even when the
    submission then failed, so the pod can still be reported and its
    sandbox torn down.
    """

    def __init__(
        self,
        context: Optional[ExecutionContext] = None,
        error: Optional[ExecutionError] = None,
    ):
        self.context = context
        self.error = error

    @property
    def pod_name(self) -> str:
        """Name of the submitted pod, or an empty string if none exists."""
        return self.context.pod_name if self.context else ""

    def is_successful(self) -> bool:
        """Check if the pod was submitted."""
        return self.error is None and self.context is not None


class ActionOutcome:
    """Outcome of running an APB action."""

    def __init__(
        self,
        action: str,
        pod_name: str = "",
        error: Optional[ApbError] = None,
        short_circuited: bool = False,
    ):
        self.action = action
        self.pod_name = pod_name
        self.error = error
        self.short_circuited = short_circuited
        self.completed_at = datetime.now(timezone.utc)

    @property
    def succeeded(self) -> bool:
        """Check if the action finished without error."""
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise the error of a failed action."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result: Dict[str, Any] = {
            "status": "success" if self.succeeded else "error",
            "action": self.action,
            "pod_name": self.pod_name,
            "short_circuited": self.short_circuited,
            "completed_at": self.completed_at.isoformat(),
        }
        if self.error is not None:
            result.update(self.error.to_dict())
        return result
