"""Create pods and volume claims for missing instances."""

import logging

from operator_fdb.builder.claims import build_volume_claim
from operator_fdb.builder.pods import build_pod
from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.errors import MalformedIdentifierError
from operator_fdb.reconcile.instances import list_instances
from operator_fdb.reconcile.retry import update_cluster
from operator_fdb.reconcile.types import ReconcileContext, StepResult
from operator_fdb.resources import PersistentVolumeClaim

logger = logging.getLogger(__name__)


class AddInstances:
    """
    Bring every process class up to its desired count.

    New instances take ids from spec.next_instance_id (starting at 1),
    skipping ids already used by live pods, and the counter is persisted
    after each class. Instances are never removed here; scaling down and
    replacement go through the pending-removal workflow.
    """

    name = "add_instances"
    requeue_after = 0.0

    async def reconcile(self, ctx: ReconcileContext) -> StepResult:
        all_instances = await list_instances(ctx)
        used_ids = set()
        for instance in all_instances:
            try:
                used_ids.add(instance.numeric_id)
            except MalformedIdentifierError:
                logger.warning("Ignoring pod with malformed instance id %r", instance.instance_id)

        for process_class in ctx.cluster.process_classes():
            cluster = ctx.cluster
            desired = cluster.desired_process_count(process_class)
            existing = [i for i in all_instances if i.process_class == process_class]
            missing = desired - len(existing)
            if missing <= 0:
                continue

            logger.info(
                "Adding %d %s instances to cluster %s/%s",
                missing, process_class, cluster.namespace, cluster.name,
            )
            next_id = max(cluster.spec.next_instance_id, 1)
            for _ in range(missing):
                while next_id in used_ids:
                    next_id += 1
                await self._create_instance(ctx, cluster, process_class, next_id)
                used_ids.add(next_id)
                next_id += 1

            def apply(target: FoundationDBCluster, value: int = next_id) -> None:
                target.spec.next_instance_id = max(target.spec.next_instance_id, value)

            await update_cluster(ctx, apply)

        return StepResult()

    async def _create_instance(
        self, ctx: ReconcileContext, cluster: FoundationDBCluster, process_class: str, n: int
    ) -> None:
        claim = build_volume_claim(cluster, process_class, n)
        if claim is not None:
            existing = await ctx.platform.get_object(
                PersistentVolumeClaim, claim.metadata.namespace, claim.metadata.name
            )
            if existing is None:
                await ctx.platform.create_object(claim)

        pod = build_pod(cluster, process_class, n)
        logger.info("Creating pod %s", pod.metadata.name)
        await ctx.platform.create_object(pod)
