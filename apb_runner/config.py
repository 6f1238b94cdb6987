"""Runner configuration, logging setup and component wiring."""

import logging
import os
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from .cluster.kubectl_client import KubectlClient
from .cluster.models import ClusterConfig
from .cluster.namespace import NamespaceOracle
from .executor.apb_executor import ApbExecutor
from .executor.orchestrator import ActionOrchestrator
from .executor.pod_watcher import PodWatcher
from .metrics import PrometheusMetrics
from .sandbox.service_account_manager import ServiceAccountManager


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value else None


class RunnerConfig(BaseModel):
    """Configuration for the APB runner."""

    # Kubernetes Configuration
    kubeconfig: Optional[str] = Field(
        default_factory=lambda: os.getenv("KUBECONFIG"),
        description="Path to kubeconfig file",
    )
    kubernetes_context: Optional[str] = Field(
        default_factory=lambda: os.getenv("KUBERNETES_CONTEXT"),
        description="Kubernetes context to use",
    )
    command_timeout_seconds: int = Field(
        default_factory=lambda: int(os.getenv("KUBECTL_TIMEOUT_SECONDS", "60")),
        description="Timeout for a single kubectl command",
    )

    # APB Configuration
    pull_policy: str = Field(
        default_factory=lambda: os.getenv("APB_PULL_POLICY", "IfNotPresent"),
        description="Image pull policy for APB pods",
    )
    sandbox_role: str = Field(
        default_factory=lambda: os.getenv("APB_SANDBOX_ROLE", "edit"),
        description="ClusterRole granted to APB sandboxes",
    )
    skip_deleted_namespace: bool = Field(
        default_factory=lambda: os.getenv("APB_SKIP_DELETED_NAMESPACE", "true").lower()
        == "true",
        description="Skip actions whose namespace is gone or terminating",
    )

    # Watch Configuration
    poll_interval_seconds: float = Field(
        default_factory=lambda: float(os.getenv("APB_POLL_INTERVAL_SECONDS", "5")),
        description="Delay between two pod polls",
    )
    watch_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("APB_WATCH_TIMEOUT_SECONDS", "3600")),
        description="Time a pod may take to reach a terminal phase",
    )
    watch_deadline_seconds: Optional[float] = Field(
        default_factory=lambda: _optional_float("APB_WATCH_DEADLINE_SECONDS"),
        description="Hard upper bound on watching a pod",
    )
    max_poll_errors: int = Field(
        default_factory=lambda: int(os.getenv("APB_MAX_POLL_ERRORS", "3")),
        description="Consecutive failed polls tolerated while watching a pod",
    )

    # Development Settings
    development_mode: bool = Field(
        default_factory=lambda: os.getenv("DEVELOPMENT_MODE", "false").lower()
        == "true",
        description="Enable development mode with additional logging",
    )
    mock_kubectl_commands: bool = Field(
        default_factory=lambda: os.getenv("MOCK_KUBECTL_COMMANDS", "false").lower()
        == "true",
        description="Mock kubectl commands for testing",
    )

    def cluster_config(self) -> ClusterConfig:
        """Derive the cluster settings handed to each action run."""
        return ClusterConfig(
            kubeconfig_path=self.kubeconfig,
            kubernetes_context=self.kubernetes_context,
            pull_policy=self.pull_policy,
            sandbox_role=self.sandbox_role,
            command_timeout_seconds=self.command_timeout_seconds,
        )


def configure_logging(development_mode: bool = False) -> None:
    """Configure structured logging."""
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if development_mode else logging.INFO,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_orchestrator(
    config: RunnerConfig,
    metrics: Optional[PrometheusMetrics] = None,
) -> ActionOrchestrator:
    """Wire the default kubectl-backed components into an orchestrator."""
    client = KubectlClient(
        cluster_config=config.cluster_config(),
        mock_commands=config.mock_kubectl_commands,
    )

    def sandbox_manager_factory() -> ServiceAccountManager:
        return ServiceAccountManager(client)

    return ActionOrchestrator(
        namespace_checker=NamespaceOracle(client),
        executor=ApbExecutor(client, sandbox_manager_factory),
        watcher=PodWatcher(
            client,
            poll_interval_seconds=config.poll_interval_seconds,
            timeout_seconds=config.watch_timeout_seconds,
            max_poll_errors=config.max_poll_errors,
        ),
        sandbox_manager_factory=sandbox_manager_factory,
        metrics=metrics or PrometheusMetrics(),
        skip_deleted_namespace=config.skip_deleted_namespace,
        watch_deadline_seconds=config.watch_deadline_seconds,
    )
