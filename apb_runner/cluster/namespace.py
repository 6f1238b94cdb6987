"""Namespace state checks used before running an APB action."""

import structlog

from ..models import ClusterQueryError
from .kubectl_client import KubectlClient
from .models import KubectlError


class NamespaceOracle:
    """Answers whether a namespace is gone or going away."""

    def __init__(self, client: KubectlClient):
        self.client = client
        self.logger = structlog.get_logger(self.__class__.__name__)

    async def is_namespace_deleted(self, name: str) -> bool:
        """Check if a namespace is absent or terminating.

        Args:
            name: Namespace name

        Returns:
            True if the namespace does not exist or is in the Terminating phase

        Raises:
            ClusterQueryError: If the namespace could not be looked up
        """
        try:
            state = await self.client.get_namespace(name)
        except KubectlError as e:
            self.logger.error(
                "Failed to look up namespace",
                namespace=name,
                error=str(e),
                error_code=e.error_code,
            )
            raise ClusterQueryError(
                f"Unable to determine state of namespace {name}: {e.message}",
                namespace=name,
            ) from e

        self.logger.debug(
            "Namespace state",
            namespace=name,
            exists=state.exists,
            phase=state.phase.value,
        )
        return state.is_deleted
