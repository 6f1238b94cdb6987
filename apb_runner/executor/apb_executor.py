"""APB pod executor.

This module submits the pod that runs an APB action against a service
instance image, inside a freshly created service account sandbox.
"""

import json
import uuid
from typing import Any, Callable, Dict

import structlog

from ..cluster.kubectl_client import KubectlClient
from ..cluster.models import ClusterConfig, KubectlError
from ..models import ExecutionError, InstanceContext, ServiceInstanceSpec
from ..sandbox.service_account_manager import ServiceAccountManager
from .models import ExecutionAttempt, ExecutionContext


class ApbExecutor:
    """Submits APB pods to the cluster."""

    def __init__(
        self,
        client: KubectlClient,
        sandbox_manager_factory: Callable[[], ServiceAccountManager],
    ):
        """Initialize the APB executor.

        Args:
            client: kubectl client used to submit pods
            sandbox_manager_factory: Builds the manager creating pod sandboxes
        """
        self.client = client
        self.sandbox_manager_factory = sandbox_manager_factory
        self.logger = structlog.get_logger(self.__class__.__name__)

    def _create_extra_vars(
        self, context: InstanceContext, parameters: Dict[str, Any]
    ) -> str:
        """Serialize the parameters handed to the playbook."""
        extra_vars = dict(parameters)
        extra_vars["namespace"] = context.namespace
        return json.dumps(extra_vars, sort_keys=True)

    def _build_pod_manifest(
        self,
        action: str,
        execution_context: ExecutionContext,
        cluster_config: ClusterConfig,
        spec: ServiceInstanceSpec,
        context: InstanceContext,
        parameters: Dict[str, Any],
    ) -> Dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": execution_context.pod_name,
                "namespace": execution_context.namespace,
                "labels": {
                    "apb-action": action,
                    "apb-fqname": spec.fq_name,
                    "apb-pod-name": execution_context.pod_name,
                },
            },
            "spec": {
                "containers": [
                    {
                        "name": "apb",
                        "image": spec.image,
                        "args": [
                            action,
                            "--extra-vars",
                            self._create_extra_vars(context, parameters),
                        ],
                        "env": [
                            {
                                "name": "POD_NAME",
                                "valueFrom": {
                                    "fieldRef": {"fieldPath": "metadata.name"}
                                },
                            },
                            {
                                "name": "POD_NAMESPACE",
                                "valueFrom": {
                                    "fieldRef": {"fieldPath": "metadata.namespace"}
                                },
                            },
                        ],
                        "imagePullPolicy": cluster_config.pull_policy,
                    }
                ],
                "restartPolicy": "Never",
                "serviceAccountName": execution_context.service_account,
            },
        }

    async def execute(
        self,
        action: str,
        cluster_config: ClusterConfig,
        spec: ServiceInstanceSpec,
        context: InstanceContext,
        parameters: Dict[str, Any],
    ) -> ExecutionAttempt:
        """Submit a pod running an APB action.

        Args:
            action: APB action to run (e.g. deprovision)
            cluster_config: Cluster settings
            spec: APB spec holding the image to run
            context: Instance context holding the target namespace
            parameters: Parameters passed to the playbook

        Returns:
            ExecutionAttempt; its context is set whenever a pod name exists
        """
        if not spec.image:
            return ExecutionAttempt(
                error=ExecutionError(f"APB spec {spec.id} has no image")
            )
        if not context.namespace:
            return ExecutionAttempt(
                error=ExecutionError(f"No namespace given to run APB {spec.fq_name} in")
            )

        pod_name = f"apb-{uuid.uuid4()}"
        execution_context = ExecutionContext(
            pod_name=pod_name,
            namespace=context.namespace,
            service_account=pod_name,
            target_namespaces=[context.namespace],
        )

        self.logger.info(
            "Executing APB",
            action=action,
            pod_name=pod_name,
            namespace=context.namespace,
            image=spec.image,
        )

        try:
            sandbox_manager = self.sandbox_manager_factory()
            await sandbox_manager.create_apb_sandbox(execution_context, cluster_config)

            manifest = self._build_pod_manifest(
                action, execution_context, cluster_config, spec, context, parameters
            )
            await self.client.apply_manifest(manifest)

        except KubectlError as e:
            self.logger.error(
                "Failed to submit APB pod",
                action=action,
                pod_name=pod_name,
                error=str(e),
                error_code=e.error_code,
            )
            return ExecutionAttempt(
                context=execution_context,
                error=ExecutionError(
                    f"Failed to run APB {action}: {e.message}",
                    pod_name=pod_name,
                    namespace=context.namespace,
                ),
            )

        self.logger.info("APB pod submitted", action=action, pod_name=pod_name)
        return ExecutionAttempt(context=execution_context)
