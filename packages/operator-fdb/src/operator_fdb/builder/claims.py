"""
Desired persistent volume claims.

Claim settings come from four sources in ascending precedence: the
deprecated flat volume_size / storage_class fields, the global volume_claim,
processes["general"].volume_claim and processes[class].volume_claim.
"""

import re

from operator_fdb.builder.hashing import json_hash
from operator_fdb.builder.merge import merge_layers
from operator_fdb.cluster import STATEFUL_PROCESS_CLASSES, FoundationDBCluster
from operator_fdb.naming import LAST_SPEC_KEY, desired_instance_id, pod_labels, pod_name
from operator_fdb.resources import (
    ObjectMeta,
    PersistentVolumeClaim,
    PersistentVolumeClaimSpec,
    ResourceRequirements,
)

DEFAULT_VOLUME_SIZE = "128G"
DEFAULT_CLAIM_SUFFIX = "data"

_ZERO_QUANTITY = re.compile(r"0+(\.0+)?[A-Za-z]*")


def is_zero_quantity(quantity: str | None) -> bool:
    return quantity is not None and _ZERO_QUANTITY.fullmatch(quantity.strip()) is not None


def _deprecated_claim(cluster: FoundationDBCluster) -> PersistentVolumeClaim | None:
    spec = cluster.spec
    if spec.volume_size is None and spec.storage_class is None:
        return None
    resources = None
    if spec.volume_size is not None:
        resources = ResourceRequirements(requests={"storage": spec.volume_size})
    return PersistentVolumeClaim(
        spec=PersistentVolumeClaimSpec(
            resources=resources,
            storage_class_name=spec.storage_class,
        )
    )


def resolve_volume_claim(
    cluster: FoundationDBCluster, process_class: str
) -> PersistentVolumeClaim:
    """Merge every claim layer onto the built-in default claim."""
    base = PersistentVolumeClaim(
        metadata=ObjectMeta(),
        spec=PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            resources=ResourceRequirements(requests={"storage": DEFAULT_VOLUME_SIZE}),
        ),
    )
    layers = [_deprecated_claim(cluster), cluster.spec.volume_claim]
    layers += [settings.volume_claim for settings in cluster.process_settings(process_class)]
    return merge_layers(base, layers)


def build_volume_claim(
    cluster: FoundationDBCluster, process_class: str, n: int
) -> PersistentVolumeClaim | None:
    """
    Build the desired claim for an instance.

    Returns:
        None when the class is stateless or the resolved size is zero, in
        which case the data volume is ephemeral.
    """
    if process_class not in STATEFUL_PROCESS_CLASSES:
        return None

    claim = resolve_volume_claim(cluster, process_class)
    requests = (claim.spec.resources.requests if claim.spec.resources else None) or {}
    if is_zero_quantity(requests.get("storage")):
        return None

    suffix = claim.metadata.name or DEFAULT_CLAIM_SUFFIX
    instance = desired_instance_id(cluster, process_class, n)
    annotations = dict(claim.metadata.annotations or {})
    annotations[LAST_SPEC_KEY] = json_hash(claim.spec)

    claim.metadata = ObjectMeta(
        name=f"{pod_name(cluster, process_class, n)}-{suffix}",
        namespace=cluster.namespace,
        labels={**(claim.metadata.labels or {}), **pod_labels(cluster, process_class, instance)},
        annotations=annotations,
        owner_references=[cluster.owner_reference()],
    )
    return claim


def claim_spec_hash(cluster: FoundationDBCluster, process_class: str, n: int) -> str | None:
    claim = build_volume_claim(cluster, process_class, n)
    if claim is None:
        return None
    return json_hash(claim.spec)
