"""
Pending-removal state machine.

Each running instance is either active or pending removal. An instance
moves to pending removal, and stays there, when:

- its id no longer matches the id its (process class, numeric id) gets under
  the current spec (the id prefix changed), or
- update_pods_by_replacement is set and its last-applied-spec hash differs
  from the freshly built desired spec.

Pending removals are recorded in cluster.status.pending_removals together
with the pod name and address the external drain step needs. Deleting the
instance is that external step's job.

Volume claim drift is detected and logged but never triggers a removal:
replacing a claim requires draining its process first, and that handshake
does not exist yet.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from operator_fdb.builder.claims import claim_spec_hash
from operator_fdb.builder.pods import pod_spec_hash
from operator_fdb.cluster import FoundationDBCluster, PendingRemovalState
from operator_fdb.naming import (
    LAST_SPEC_KEY,
    desired_instance_id,
    instance_id_from_meta,
    parse_instance_id,
    pod_labels,
    process_class_from_meta,
)
from operator_fdb.reconcile.instances import Instance, list_instances
from operator_fdb.reconcile.retry import update_cluster
from operator_fdb.reconcile.types import ReconcileContext, StepResult
from operator_fdb.resources import PersistentVolumeClaim

logger = logging.getLogger(__name__)


class RemovalReason(str, Enum):
    """Why an instance was marked for replacement."""

    INSTANCE_ID_CHANGED = "instance_id_changed"
    SPEC_DRIFT = "spec_drift"


@dataclass(frozen=True)
class NoAction:
    pass


@dataclass(frozen=True)
class MarkPendingRemoval:
    reason: RemovalReason


RemovalDecision = NoAction | MarkPendingRemoval


def decide_removal(
    instance: Instance,
    desired_id: str,
    desired_hash: str | None = None,
    replace_on_drift: bool = False,
) -> RemovalDecision:
    """
    Decide whether an active instance must be replaced.

    Args:
        instance: Instance that is not already pending removal
        desired_id: Id the instance's coordinates get under the current spec
        desired_hash: Hash of the desired pod spec, checked only when
            replace_on_drift is set
        replace_on_drift: Replace instead of updating in place

    Returns:
        MarkPendingRemoval with the first matching reason, else NoAction.
    """
    if instance.instance_id != desired_id:
        return MarkPendingRemoval(RemovalReason.INSTANCE_ID_CHANGED)
    if replace_on_drift and instance.annotations.get(LAST_SPEC_KEY) != desired_hash:
        return MarkPendingRemoval(RemovalReason.SPEC_DRIFT)
    return NoAction()


def _owned_by(claim: PersistentVolumeClaim, cluster: FoundationDBCluster) -> bool:
    return any(
        reference.uid == cluster.metadata.uid
        for reference in claim.metadata.owner_references or []
    )


class ReplaceMisconfiguredInstances:
    name = "replace_misconfigured_instances"
    requeue_after = 0.0

    async def reconcile(self, ctx: ReconcileContext) -> StepResult:
        cluster = ctx.cluster
        pending = cluster.status.pending_removals or {}

        await self._check_claims(ctx, pending)

        new_removals: dict[str, PendingRemovalState] = {}
        for instance in await list_instances(ctx):
            if instance.pod is None:
                continue
            current_id = instance.instance_id
            if current_id in pending or current_id in new_removals:
                continue

            parsed_class, n = parse_instance_id(current_id)
            process_class = instance.process_class or parsed_class
            replace_on_drift = cluster.spec.update_pods_by_replacement
            decision = decide_removal(
                instance,
                desired_instance_id(cluster, process_class, n),
                pod_spec_hash(cluster, process_class, n) if replace_on_drift else None,
                replace_on_drift,
            )
            if isinstance(decision, MarkPendingRemoval):
                logger.info(
                    "Marking instance %s of %s for removal: %s",
                    current_id, cluster.name, decision.reason.value,
                )
                new_removals[current_id] = PendingRemovalState(
                    pod_name=instance.pod.metadata.name,
                    address=instance.address,
                )

        if new_removals:

            def apply(target: FoundationDBCluster) -> None:
                # Entries already recorded keep their drain progress
                target.status.pending_removals = {
                    **new_removals,
                    **(target.status.pending_removals or {}),
                }

            await update_cluster(ctx, apply, status=True)

        return StepResult()

    async def _check_claims(
        self, ctx: ReconcileContext, pending: dict[str, PendingRemovalState]
    ) -> None:
        cluster = ctx.cluster
        claims = await ctx.platform.list_objects(
            PersistentVolumeClaim, cluster.namespace, pod_labels(cluster)
        )
        for claim in claims:
            if not _owned_by(claim, cluster):
                continue
            current_id = instance_id_from_meta(claim.metadata)
            if current_id in pending:
                continue
            _, n = parse_instance_id(current_id)
            desired_hash = claim_spec_hash(cluster, process_class_from_meta(claim.metadata), n)
            if (claim.metadata.annotations or {}).get(LAST_SPEC_KEY) != desired_hash:
                # TODO: mark the owning instance once the drain handshake for claim replacement exists
                logger.info("Volume claim %s has drifted; replacement deferred", claim.metadata.name)
