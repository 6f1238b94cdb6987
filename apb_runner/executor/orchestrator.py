"""Action orchestration for APB pods.

This module runs a single APB action end to end: it validates the service
instance, skips instances whose namespace is already going away, submits the
APB pod, watches it to completion and always tears down the pod's sandbox.
"""

import asyncio
from typing import Any, Callable, Optional

import structlog

from ..cluster.models import ClusterConfig
from ..models import (
    ClusterQueryError,
    ConfigurationError,
    ExecutionError,
    ObservationError,
    ServiceInstance,
)
from .interfaces import (
    MetricsSink,
    NamespaceChecker,
    SandboxManager,
    WorkloadExecutor,
    WorkloadObserver,
)
from .models import ActionOutcome, ExecutionAttempt, ExecutionContext

BANNER = "=" * 60


class ActionOrchestrator:
    """Runs APB actions with guaranteed sandbox teardown."""

    def __init__(
        self,
        namespace_checker: NamespaceChecker,
        executor: WorkloadExecutor,
        watcher: WorkloadObserver,
        sandbox_manager_factory: Callable[[], SandboxManager],
        metrics: MetricsSink,
        logger: Optional[Any] = None,
        skip_deleted_namespace: bool = True,
        watch_deadline_seconds: Optional[float] = None,
    ):
        """Initialize the action orchestrator.

        Args:
            namespace_checker: Answers whether a namespace is gone or terminating
            executor: Submits APB pods
            watcher: Watches APB pods to completion
            sandbox_manager_factory: Builds a sandbox manager for one action run
            metrics: Receives action metrics
            logger: structlog logger, defaults to one named after this class
            skip_deleted_namespace: Treat actions on a deleted or terminating
                namespace as done without running them
            watch_deadline_seconds: Default upper bound on watching a pod
        """
        self.namespace_checker = namespace_checker
        self.executor = executor
        self.watcher = watcher
        self.sandbox_manager_factory = sandbox_manager_factory
        self.metrics = metrics
        self.logger = logger or structlog.get_logger(self.__class__.__name__)
        self.skip_deleted_namespace = skip_deleted_namespace
        self.watch_deadline_seconds = watch_deadline_seconds

    def _log_banner(self, action: str, instance: ServiceInstance, log: Any) -> None:
        log.info(BANNER)
        log.info(f"{action.upper():^60}")
        log.info(BANNER)
        log.info(
            "ServiceInstance",
            id=instance.spec.id,
            name=instance.spec.fq_name,
            image=instance.spec.image,
            description=instance.spec.description,
        )
        log.info(BANNER)

    async def run_action(
        self,
        action: str,
        instance: ServiceInstance,
        cluster_config: ClusterConfig,
        deadline_seconds: Optional[float] = None,
    ) -> ActionOutcome:
        """Run an APB action against a service instance.

        Args:
            action: APB action to run (e.g. deprovision)
            instance: Service instance the action runs against
            cluster_config: Cluster settings passed to the executor and sandbox
            deadline_seconds: Upper bound on watching the pod, overrides the
                orchestrator default

        Returns:
            ActionOutcome carrying the pod name whenever a pod was created
        """
        log = self.logger.bind(action=action, instance_id=instance.id)
        self._log_banner(action, instance, log)

        if not instance.spec.image:
            log.error(
                "No image field found on the APB spec",
                hint="APB specs require separate name and image fields",
            )
            return ActionOutcome(
                action,
                error=ConfigurationError(
                    "No image field found on instance spec", field="image"
                ),
            )

        namespace = instance.context.namespace
        try:
            namespace_deleted = await self.namespace_checker.is_namespace_deleted(
                namespace
            )
        except ClusterQueryError as e:
            log.error("Failed to check namespace", namespace=namespace, error=str(e))
            return ActionOutcome(action, error=e)

        if namespace_deleted:
            if self.skip_deleted_namespace:
                log.info(
                    "Namespace is gone or terminating, skipping action",
                    namespace=namespace,
                )
                return ActionOutcome(action, short_circuited=True)
            log.warning(
                "Namespace is gone or terminating, running action anyway",
                namespace=namespace,
            )

        sandbox_manager = self.sandbox_manager_factory()
        execution_context: Optional[ExecutionContext] = None
        try:
            self.metrics.action_started(action)

            attempt = await self._execute(action, instance, cluster_config)
            execution_context = attempt.context
            if attempt.error is not None:
                log.error(
                    "Problem executing APB",
                    pod_name=attempt.pod_name,
                    error=str(attempt.error),
                )
                return ActionOutcome(action, attempt.pod_name, attempt.error)

            if execution_context is None:
                return ActionOutcome(
                    action,
                    error=ExecutionError("Executor returned no execution context"),
                )

            try:
                output = await self._watch(execution_context, deadline_seconds)
            except ObservationError as e:
                log.error(
                    "Error returned from watching pod",
                    pod_name=execution_context.pod_name,
                    error=str(e),
                    output=e.output,
                )
                return ActionOutcome(action, execution_context.pod_name, e)

            log.info(
                "APB action completed",
                pod_name=execution_context.pod_name,
                output=output,
            )
            return ActionOutcome(action, execution_context.pod_name)

        finally:
            await self._teardown(
                sandbox_manager, execution_context, cluster_config, action, log
            )

    async def deprovision(
        self,
        instance: ServiceInstance,
        cluster_config: ClusterConfig,
        deadline_seconds: Optional[float] = None,
    ) -> ActionOutcome:
        """Run the deprovision action against a service instance."""
        return await self.run_action(
            "deprovision", instance, cluster_config, deadline_seconds
        )

    async def _execute(
        self,
        action: str,
        instance: ServiceInstance,
        cluster_config: ClusterConfig,
    ) -> ExecutionAttempt:
        try:
            return await self.executor.execute(
                action,
                cluster_config,
                instance.spec,
                instance.context,
                instance.parameters,
            )
        except ExecutionError as e:
            return ExecutionAttempt(error=e)

    async def _watch(
        self,
        execution_context: ExecutionContext,
        deadline_seconds: Optional[float],
    ) -> str:
        deadline = (
            deadline_seconds
            if deadline_seconds is not None
            else self.watch_deadline_seconds
        )
        watch = self.watcher.watch(execution_context.pod_name, execution_context.namespace)
        if deadline is None:
            return await watch

        try:
            return await asyncio.wait_for(watch, timeout=deadline)
        except asyncio.TimeoutError:
            raise ObservationError(
                f"Watch deadline of {deadline} seconds exceeded for pod {execution_context.pod_name}",
                pod_name=execution_context.pod_name,
                namespace=execution_context.namespace,
            )

    async def _teardown(
        self,
        sandbox_manager: SandboxManager,
        execution_context: Optional[ExecutionContext],
        cluster_config: ClusterConfig,
        action: str,
        log: Any,
    ) -> None:
        """Destroy the sandbox; failures are recorded, never raised."""
        try:
            await sandbox_manager.destroy_apb_sandbox(execution_context, cluster_config)
        except Exception as e:
            self.metrics.sandbox_cleanup_failed(action)
            log.error(
                "Failed to destroy APB sandbox",
                pod_name=execution_context.pod_name if execution_context else "",
                error=str(e),
                error_code=getattr(e, "error_code", "CLEANUP_ERROR"),
            )
