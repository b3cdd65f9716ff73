"""
Coordinator bootstrap.

A new cluster has no connection string. Once enough storage instances
exist, the first N of them (N = desired coordinator count) become the
coordinators: their addresses are collected concurrently from the sidecars
and joined into "{name}:init@{ip}:4500,...". The connection string is
persisted to the spec and the config map is regenerated immediately so
instances pick it up.

Nothing is written unless every coordinator address was collected.
"""

import logging

from operator_fdb.builder.pods import FDB_PORT
from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.errors import InsufficientInstancesError
from operator_fdb.naming import sanitize_cluster_name
from operator_fdb.reconcile.concurrency import fan_out
from operator_fdb.reconcile.config_map import UpdateConfigMap
from operator_fdb.reconcile.instances import Instance, list_instances, wait_for_address
from operator_fdb.reconcile.retry import update_cluster
from operator_fdb.reconcile.types import ReconcileContext, StepResult

logger = logging.getLogger(__name__)


def build_connection_string(cluster_name: str, addresses: list[str]) -> str:
    coordinators = ",".join(f"{address}:{FDB_PORT}" for address in addresses)
    return f"{sanitize_cluster_name(cluster_name)}:init@{coordinators}"


class GenerateInitialClusterFile:
    name = "generate_initial_cluster_file"
    requeue_after = 0.0

    async def reconcile(self, ctx: ReconcileContext) -> StepResult:
        cluster = ctx.cluster
        if cluster.spec.connection_string:
            return StepResult()

        logger.info("Generating initial cluster file for %s/%s", cluster.namespace, cluster.name)
        candidates = [i for i in await list_instances(ctx, "storage") if i.pod is not None]
        required = cluster.desired_coordinator_count()
        if len(candidates) < required:
            raise InsufficientInstancesError(cluster.name, required, len(candidates))

        async def address_of(instance: Instance) -> str:
            _, _, address = await wait_for_address(ctx, cluster, instance.pod)
            return address

        addresses = await fan_out(candidates[:required], address_of)
        connection_string = build_connection_string(cluster.name, addresses)

        def apply(target: FoundationDBCluster) -> None:
            if not target.spec.connection_string:
                target.spec.connection_string = connection_string

        await update_cluster(ctx, apply)
        logger.info("Connection string for %s is %s", cluster.name, ctx.cluster.spec.connection_string)
        await ctx.platform.record_event(
            ctx.cluster, "Normal", "GeneratedClusterFile", ctx.cluster.spec.connection_string
        )

        return await UpdateConfigMap().reconcile(ctx)
