"""
Dynamic config sync.

Pushes the cluster file and the rendered fdbmonitor.conf to every instance
whose last-applied-config-map annotation differs from the hash of the
current config map, then stamps the new hash on the instance. Instances are
synced concurrently; the two pushes for one instance run concurrently too
and both must succeed before the hash is stamped.

An instance whose pod never gets an address within the allowed checks makes
the step report not-done (requeue in 30s). Any other failure aborts the
step once every in-flight sync has finished.
"""

import logging

from operator_fdb.builder.config_map import build_config_map, config_map_hash, pod_monitor_conf
from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.errors import AddressNotAssignedError
from operator_fdb.naming import LAST_CONFIG_MAP_KEY
from operator_fdb.reconcile.concurrency import fan_out, join_all
from operator_fdb.reconcile.instances import (
    Instance,
    list_instances,
    update_annotations,
    wait_for_address,
)
from operator_fdb.reconcile.types import ReconcileContext, StepResult

logger = logging.getLogger(__name__)


class SyncDynamicConfig:
    name = "sync_dynamic_config"
    requeue_after = 30.0

    async def reconcile(self, ctx: ReconcileContext) -> StepResult:
        cluster = ctx.cluster
        expected = config_map_hash(build_config_map(cluster))

        stale = [
            instance
            for instance in await list_instances(ctx)
            if instance.pod is not None
            and instance.annotations.get(LAST_CONFIG_MAP_KEY) != expected
        ]
        if not stale:
            return StepResult()

        logger.info("Syncing dynamic conf to %d instances of %s", len(stale), cluster.name)

        async def sync(instance: Instance) -> bool:
            return await self._sync_instance(ctx, cluster, instance, expected)

        synced = await fan_out(stale, sync)
        if not all(synced):
            return StepResult.requeue(self.requeue_after, "waiting for pods to be assigned an IP")
        return StepResult()

    async def _sync_instance(
        self,
        ctx: ReconcileContext,
        cluster: FoundationDBCluster,
        instance: Instance,
        expected: str,
    ) -> bool:
        try:
            client, pod, _ = await wait_for_address(
                ctx, cluster, instance.pod, max_attempts=ctx.settings.address_wait_attempts
            )
        except AddressNotAssignedError as e:
            logger.info("Skipping dynamic conf for %s: %s", instance.instance_id, e)
            return False

        files = {"fdb.cluster": cluster.spec.connection_string}
        if cluster.spec.trusted_cas:
            files["ca.pem"] = "\n".join(cluster.spec.trusted_cas)

        await join_all(
            client.generate_monitor_conf(pod_monitor_conf(cluster, pod)),
            client.copy_files(files),
        )

        instance.pod = pod
        await update_annotations(ctx, instance, {LAST_CONFIG_MAP_KEY: expected})
        return True
