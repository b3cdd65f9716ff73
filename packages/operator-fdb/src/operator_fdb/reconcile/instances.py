"""
Instances and their backing pods.

An Instance is one logical FoundationDB process. Its identity lives in the
labels of its pod; the pod may be absent while it is being created or after
it was deleted.
"""

import asyncio
import logging
from dataclasses import dataclass

from operator_fdb.clients.sidecar import SidecarClient
from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.errors import AddressNotAssignedError, MalformedIdentifierError
from operator_fdb.naming import (
    instance_id_from_meta,
    parse_instance_id,
    pod_labels,
    process_class_from_meta,
)
from operator_fdb.reconcile.retry import RetryConfig, update_with_retry
from operator_fdb.reconcile.types import ReconcileContext
from operator_fdb.resources import ObjectMeta, Pod

logger = logging.getLogger(__name__)


@dataclass
class Instance:
    """
    A logical process and its backing pod.

    Attributes:
        metadata: Labels and annotations identifying the instance
        pod: Backing pod, None when it does not exist
    """

    metadata: ObjectMeta
    pod: Pod | None = None

    @property
    def instance_id(self) -> str:
        return instance_id_from_meta(self.metadata)

    @property
    def process_class(self) -> str:
        return process_class_from_meta(self.metadata)

    @property
    def numeric_id(self) -> int:
        return parse_instance_id(self.instance_id)[1]

    @property
    def address(self) -> str | None:
        if self.pod is None or self.pod.status is None:
            return None
        return self.pod.status.pod_ip

    @property
    def annotations(self) -> dict[str, str]:
        return self.metadata.annotations or {}


def _sort_key(instance: Instance) -> tuple[int, int, str]:
    try:
        return (0, instance.numeric_id, instance.instance_id)
    except MalformedIdentifierError:
        return (1, 0, instance.instance_id)


async def list_instances(
    ctx: ReconcileContext, process_class: str | None = None
) -> list[Instance]:
    """List the cluster's instances, ordered by numeric id."""
    cluster = ctx.cluster
    pods = await ctx.platform.list_objects(
        Pod, cluster.namespace, pod_labels(cluster, process_class)
    )
    instances = [Instance(metadata=pod.metadata, pod=pod) for pod in pods]
    return sorted(instances, key=_sort_key)


async def update_annotations(
    ctx: ReconcileContext, instance: Instance, annotations: dict[str, str]
) -> None:
    """Merge annotations into the instance's pod metadata."""
    if instance.pod is None:
        return

    def apply(pod: Pod) -> None:
        pod.metadata.annotations = {**(pod.metadata.annotations or {}), **annotations}

    retry = RetryConfig(max_attempts=ctx.settings.conflict_retry_attempts)
    instance.pod = await update_with_retry(ctx.platform, instance.pod, apply, config=retry)
    instance.metadata = instance.pod.metadata


async def wait_for_address(
    ctx: ReconcileContext,
    cluster: FoundationDBCluster,
    pod: Pod,
    max_attempts: int | None = None,
) -> tuple[SidecarClient, Pod, str]:
    """
    Build a sidecar client for a pod once it has an address.

    Polls the pod with a fixed sleep while the address is unassigned. Any
    other error fails fast.

    Args:
        ctx: Reconcile context
        cluster: Cluster the pod belongs to
        pod: Latest known copy of the pod
        max_attempts: Give up after this many checks; None waits until the
            surrounding reconcile timeout cancels the wait

    Returns:
        (client, refreshed pod, address)

    Raises:
        AddressNotAssignedError: If max_attempts is exhausted or the pod is gone.
    """
    attempts = 0
    while True:
        client = ctx.sidecars.client_for(cluster, pod)
        try:
            return client, pod, await client.get_address()
        except AddressNotAssignedError:
            attempts += 1
            if max_attempts is not None and attempts >= max_attempts:
                raise
            logger.info("Waiting for pod %s to be assigned an IP", pod.metadata.name)

        await asyncio.sleep(ctx.settings.address_poll_seconds)
        refreshed = await ctx.platform.get_object(
            Pod, pod.metadata.namespace or cluster.namespace, pod.metadata.name
        )
        if refreshed is None:
            raise AddressNotAssignedError(pod.metadata.name or "")
        pod = refreshed
