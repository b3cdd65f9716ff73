"""Reconcile FoundationDBBackup resources into backup agent deployments."""

import logging

from operator_fdb.builder.backup import build_backup_deployment
from operator_fdb.clients.platform import PlatformClient
from operator_fdb.cluster import FoundationDBBackup, FoundationDBCluster
from operator_fdb.config import OperatorSettings
from operator_fdb.naming import LAST_SPEC_KEY, backup_deployment_name
from operator_fdb.reconcile.retry import RetryConfig, update_with_retry
from operator_fdb.reconcile.types import ReconcileResult
from operator_fdb.resources import Deployment

logger = logging.getLogger(__name__)


class BackupReconciler:
    """
    Keeps a backup's agent deployment equal to its desired shape.

    The deployment is created when missing, replaced when its
    last-applied-spec hash differs and deleted when the agent count is 0.
    """

    def __init__(self, platform: PlatformClient, settings: OperatorSettings | None = None) -> None:
        self.platform = platform
        self.settings = settings or OperatorSettings()

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        try:
            return await self._reconcile(namespace, name)
        except Exception as e:
            logger.error("Backup reconcile failed for %s/%s: %s", namespace, name, e)
            return ReconcileResult(namespace=namespace, name=name, completed=False, error=str(e))

    async def _reconcile(self, namespace: str, name: str) -> ReconcileResult:
        backup = await self.platform.get_object(FoundationDBBackup, namespace, name)
        if backup is None:
            return ReconcileResult(namespace=namespace, name=name, completed=True)

        cluster = await self.platform.get_object(
            FoundationDBCluster, namespace, backup.spec.cluster_name
        )
        if cluster is None:
            message = f"Cluster {backup.spec.cluster_name} not found"
            await self.platform.record_event(backup, "Warning", "ClusterNotFound", message)
            return ReconcileResult(namespace=namespace, name=name, completed=False, error=message)

        desired = build_backup_deployment(backup, cluster)
        deployment_name = backup_deployment_name(backup.name)
        existing = await self.platform.get_object(Deployment, namespace, deployment_name)

        if desired is None:
            if existing is not None:
                logger.info("Deleting backup deployment %s/%s", namespace, deployment_name)
                await self.platform.delete_object(Deployment, namespace, deployment_name)
            return ReconcileResult(namespace=namespace, name=name, completed=True)

        if existing is None:
            logger.info("Creating backup deployment %s/%s", namespace, deployment_name)
            await self.platform.create_object(desired)
            return ReconcileResult(namespace=namespace, name=name, completed=True)

        desired_hash = (desired.metadata.annotations or {}).get(LAST_SPEC_KEY)
        if (existing.metadata.annotations or {}).get(LAST_SPEC_KEY) != desired_hash:

            def apply(deployment: Deployment) -> None:
                deployment.metadata.labels = {
                    **(deployment.metadata.labels or {}),
                    **(desired.metadata.labels or {}),
                }
                deployment.metadata.annotations = {
                    **(deployment.metadata.annotations or {}),
                    **(desired.metadata.annotations or {}),
                }
                deployment.spec = desired.spec.model_copy(deep=True)

            logger.info("Updating backup deployment %s/%s", namespace, deployment_name)
            await update_with_retry(
                self.platform,
                existing,
                apply,
                config=RetryConfig(max_attempts=self.settings.conflict_retry_attempts),
            )

        return ReconcileResult(namespace=namespace, name=name, completed=True)
