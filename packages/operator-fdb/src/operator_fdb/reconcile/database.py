"""Apply the initial database configuration."""

import logging

from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.reconcile.retry import update_cluster
from operator_fdb.reconcile.types import ReconcileContext, StepResult

logger = logging.getLogger(__name__)


class UpdateDatabaseConfiguration:
    """
    Run `configure new` once per cluster.

    The configured flag is set only after the admin client succeeded, so a
    rejected configuration (AdminConfigurationError) is retried on the next
    pass.
    """

    name = "update_database_configuration"
    requeue_after = 0.0

    async def reconcile(self, ctx: ReconcileContext) -> StepResult:
        cluster = ctx.cluster
        if cluster.spec.configured:
            return StepResult()

        config = cluster.database_configuration()
        logger.info(
            "Configuring new database %s/%s: %s",
            cluster.namespace, cluster.name, config.configure_args(),
        )
        admin = ctx.admin.client_for(cluster)
        await admin.configure_database(config, initial=True)

        def apply(target: FoundationDBCluster) -> None:
            target.spec.configured = True

        await update_cluster(ctx, apply)
        await ctx.platform.record_event(ctx.cluster, "Normal", "ConfiguredDatabase", config.configure_args())
        logger.info("Configured database %s", cluster.name)
        return StepResult()
