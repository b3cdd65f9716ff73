"""Fill in spec fields the user left empty."""

import logging

from operator_fdb.cluster import (
    DEFAULT_REPLICATION_MODE,
    DEFAULT_STORAGE_ENGINE,
    FoundationDBCluster,
)
from operator_fdb.reconcile.retry import update_cluster
from operator_fdb.reconcile.types import ReconcileContext, StepResult

logger = logging.getLogger(__name__)


class SetDefaultValues:
    """Persist the default replication mode and storage engine."""

    name = "set_default_values"
    requeue_after = 0.0

    async def reconcile(self, ctx: ReconcileContext) -> StepResult:
        spec = ctx.cluster.spec
        if ctx.cluster.sidecar_tls_requested and not ctx.cluster.sidecar_tls_enabled:
            logger.warning(
                "Sidecar TLS requested for %s/%s but version %s predates sidecar TLS support; "
                "sidecars will serve plain HTTP",
                ctx.cluster.namespace, ctx.cluster.name, spec.version,
            )
        if spec.replication_mode and spec.storage_engine:
            return StepResult()

        def apply(cluster: FoundationDBCluster) -> None:
            cluster.spec.replication_mode = cluster.spec.replication_mode or DEFAULT_REPLICATION_MODE
            cluster.spec.storage_engine = cluster.spec.storage_engine or DEFAULT_STORAGE_ENGINE

        logger.info("Setting default values for cluster %s/%s", ctx.cluster.namespace, ctx.cluster.name)
        await update_cluster(ctx, apply)
        return StepResult()
