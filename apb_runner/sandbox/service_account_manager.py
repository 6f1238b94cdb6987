"""Service account sandboxes for APB pods.

Every APB pod runs under its own service account. The account is bound to
the configured ClusterRole in each namespace the APB is allowed to touch,
and both are deleted once the action has finished.
"""

from typing import Any, Dict, Optional

import structlog

from ..cluster.kubectl_client import KubectlClient
from ..cluster.models import ClusterConfig, KubectlError
from ..executor.models import ExecutionContext
from ..models import CleanupError


class ServiceAccountManager:
    """Creates and destroys the identity an APB pod runs under."""

    def __init__(self, client: KubectlClient):
        self.client = client
        self.logger = structlog.get_logger(self.__class__.__name__)

    def _service_account_manifest(self, name: str, namespace: str) -> Dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": {"apb-pod-name": name},
            },
        }

    def _role_binding_manifest(
        self, name: str, service_account_namespace: str, target_namespace: str, role: str
    ) -> Dict[str, Any]:
        return {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "RoleBinding",
            "metadata": {
                "name": name,
                "namespace": target_namespace,
                "labels": {"apb-pod-name": name},
            },
            "subjects": [
                {
                    "kind": "ServiceAccount",
                    "name": name,
                    "namespace": service_account_namespace,
                }
            ],
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": role,
            },
        }

    async def create_apb_sandbox(
        self,
        execution_context: ExecutionContext,
        cluster_config: ClusterConfig,
    ) -> str:
        """Create the service account and role bindings for an APB pod.

        Args:
            execution_context: Context of the pod the sandbox is created for
            cluster_config: Cluster settings holding the sandbox role

        Returns:
            Name of the created service account

        Raises:
            KubectlError: If any sandbox resource could not be created
        """
        name = execution_context.service_account

        self.logger.info(
            "Creating APB sandbox",
            service_account=name,
            namespace=execution_context.namespace,
            target_namespaces=execution_context.target_namespaces,
            role=cluster_config.sandbox_role,
        )

        await self.client.apply_manifest(
            self._service_account_manifest(name, execution_context.namespace)
        )
        for target_namespace in execution_context.target_namespaces:
            await self.client.apply_manifest(
                self._role_binding_manifest(
                    name,
                    execution_context.namespace,
                    target_namespace,
                    cluster_config.sandbox_role,
                )
            )

        return name

    async def destroy_apb_sandbox(
        self,
        execution_context: Optional[ExecutionContext],
        cluster_config: ClusterConfig,
    ) -> None:
        """Delete the sandbox created for an APB pod.

        Safe to call when no sandbox was ever created.

        Raises:
            CleanupError: If any sandbox resource could not be deleted
        """
        if execution_context is None:
            self.logger.debug("No execution context, nothing to destroy")
            return

        name = execution_context.service_account
        self.logger.info(
            "Destroying APB sandbox",
            service_account=name,
            namespace=execution_context.namespace,
        )

        try:
            for target_namespace in execution_context.target_namespaces:
                await self.client.delete_resource("rolebinding", name, target_namespace)
            await self.client.delete_resource(
                "serviceaccount", name, execution_context.namespace
            )
        except KubectlError as e:
            raise CleanupError(
                f"Failed to destroy sandbox {name}: {e.message}",
                pod_name=execution_context.pod_name,
                namespace=execution_context.namespace,
            ) from e

        self.logger.info("APB sandbox destroyed", service_account=name)
