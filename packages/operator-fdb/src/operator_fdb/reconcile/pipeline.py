"""
Reconciliation pipeline.

Runs the fixed sequence of idempotent steps for one cluster:

1. SetDefaultValues
2. UpdateConfigMap
3. AddInstances
4. SyncDynamicConfig
5. ReplaceMisconfiguredInstances
6. GenerateInitialClusterFile
7. UpdateDatabaseConfiguration

Steps run strictly one after another. A step that is not done stops the
pass and reports its requeue delay. A step that raises stops the pass too;
the error is logged and recorded as a Warning event on the cluster, and
nothing is rolled back. Every step is idempotent, so the next trigger simply
starts over.

The reconciler holds only injected capabilities, never per-cluster state,
so one instance can reconcile many clusters concurrently.

Example:
    reconciler = Reconciler(platform, sidecars, admin, settings)
    result = await reconciler.reconcile("default", "sample-cluster")
    if not result.completed:
        print(result.step, result.requeue_after, result.error)
"""

import asyncio
import logging
from collections.abc import Sequence

from operator_fdb.clients.admin import AdminClientFactory
from operator_fdb.clients.platform import PlatformClient
from operator_fdb.clients.sidecar import SidecarClientFactory
from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.config import OperatorSettings
from operator_fdb.reconcile.add_instances import AddInstances
from operator_fdb.reconcile.bootstrap import GenerateInitialClusterFile
from operator_fdb.reconcile.config_map import UpdateConfigMap
from operator_fdb.reconcile.database import UpdateDatabaseConfiguration
from operator_fdb.reconcile.defaults import SetDefaultValues
from operator_fdb.reconcile.dynamic_conf import SyncDynamicConfig
from operator_fdb.reconcile.removals import ReplaceMisconfiguredInstances
from operator_fdb.reconcile.retry import update_cluster
from operator_fdb.reconcile.types import ReconcileContext, ReconcileResult, ReconcileStep

logger = logging.getLogger(__name__)


def default_steps() -> list[ReconcileStep]:
    return [
        SetDefaultValues(),
        UpdateConfigMap(),
        AddInstances(),
        SyncDynamicConfig(),
        ReplaceMisconfiguredInstances(),
        GenerateInitialClusterFile(),
        UpdateDatabaseConfiguration(),
    ]


class Reconciler:
    """
    Drives one FoundationDBCluster toward its spec.

    Args:
        platform: Platform resource API
        sidecars: Builds a sidecar client per pod
        admin: Builds an admin client per cluster
        settings: Operator settings (timeouts, retry attempts)
        steps: Override the step sequence; defaults to default_steps()
    """

    def __init__(
        self,
        platform: PlatformClient,
        sidecars: SidecarClientFactory,
        admin: AdminClientFactory,
        settings: OperatorSettings | None = None,
        steps: Sequence[ReconcileStep] | None = None,
    ) -> None:
        self.platform = platform
        self.sidecars = sidecars
        self.admin = admin
        self.settings = settings or OperatorSettings()
        self.steps = list(steps) if steps is not None else default_steps()

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """
        Run one pass of the pipeline, bounded by the reconcile timeout.

        Returns:
            ReconcileResult describing where the pass stopped. Recoverable
            failures are reported in the result, never raised.
        """
        try:
            cluster = await self.platform.get_object(FoundationDBCluster, namespace, name)
        except Exception as e:
            # Nothing to attach an event to yet; the next pass fetches again
            logger.error("Failed to fetch cluster %s/%s: %s", namespace, name, e)
            return ReconcileResult(namespace=namespace, name=name, completed=False, error=str(e))
        if cluster is None:
            logger.debug("Cluster %s/%s not found, nothing to do", namespace, name)
            return ReconcileResult(namespace=namespace, name=name, completed=True)

        ctx = ReconcileContext(
            cluster=cluster,
            platform=self.platform,
            sidecars=self.sidecars,
            admin=self.admin,
            settings=self.settings,
        )
        try:
            return await asyncio.wait_for(
                self._run_steps(ctx), timeout=self.settings.reconcile_timeout_seconds
            )
        except asyncio.TimeoutError:
            message = f"Reconcile timed out after {self.settings.reconcile_timeout_seconds}s"
            logger.error("%s for %s/%s", message, namespace, name)
            await self.platform.record_event(ctx.cluster, "Warning", "ReconciliationFailed", message)
            return ReconcileResult(namespace=namespace, name=name, completed=False, error=message)

    async def _run_steps(self, ctx: ReconcileContext) -> ReconcileResult:
        namespace, name = ctx.cluster.namespace, ctx.cluster.name

        for step in self.steps:
            try:
                result = await step.reconcile(ctx)
            except Exception as e:
                logger.error("Step %s failed for %s/%s: %s", step.name, namespace, name, e)
                await self.platform.record_event(
                    ctx.cluster, "Warning", "ReconciliationFailed", f"{step.name}: {e}"
                )
                return ReconcileResult(
                    namespace=namespace, name=name, completed=False, step=step.name, error=str(e)
                )

            if not result.done:
                logger.info(
                    "Step %s not done for %s/%s (%s), requeue in %.0fs",
                    step.name, namespace, name, result.message, result.requeue_after,
                )
                return ReconcileResult(
                    namespace=namespace,
                    name=name,
                    completed=False,
                    step=step.name,
                    requeue_after=result.requeue_after,
                )

        try:
            await self._mark_reconciled(ctx)
        except Exception as e:
            # The next pass records the generation again
            logger.warning("Could not record reconciled generation for %s/%s: %s", namespace, name, e)
        logger.info("Reconciled cluster %s/%s", namespace, name)
        return ReconcileResult(namespace=namespace, name=name, completed=True)

    async def _mark_reconciled(self, ctx: ReconcileContext) -> None:
        generation = ctx.cluster.metadata.generation
        if generation is None or ctx.cluster.status.generations_reconciled == generation:
            return

        def apply(target: FoundationDBCluster) -> None:
            target.status.generations_reconciled = generation

        await update_cluster(ctx, apply, status=True)
