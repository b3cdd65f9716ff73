"""
Resource naming and label scheme.

Pure functions mapping (cluster, process class, numeric id, prefix) to the
names and labels stamped on managed resources. The same label set is used to
stamp new resources and as the list selector that finds them again, so both
directions go through pod_labels().

Example:
    instance_id("east", "storage", 3)      # "east-storage-3"
    parse_instance_id("east-storage-3")    # ("storage", 3)
    pod_name(cluster, "cluster_controller", 1)  # "my-cluster-cluster-controller-1"
"""

import re

from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.errors import MalformedIdentifierError
from operator_fdb.resources import ObjectMeta

CLUSTER_NAME_LABEL = "fdb-cluster-name"
PROCESS_CLASS_LABEL = "fdb-process-class"
INSTANCE_ID_LABEL = "fdb-instance-id"

LAST_SPEC_KEY = "foundationdb.org/last-applied-spec"
LAST_CONFIG_MAP_KEY = "foundationdb.org/last-applied-config-map"
BACKUP_FOR_LABEL = "foundationdb.org/backup-for"
DEPLOYMENT_NAME_LABEL = "foundationdb.org/deployment-name"

_CONNECTION_STRING_NAME = re.compile(r"[^A-Za-z0-9_]")


def instance_id(prefix: str | None, process_class: str, n: int) -> str:
    """Build the permanent identifier of an instance."""
    if prefix:
        return f"{prefix}-{process_class}-{n}"
    return f"{process_class}-{n}"


def desired_instance_id(cluster: FoundationDBCluster, process_class: str, n: int) -> str:
    return instance_id(cluster.spec.instance_id_prefix, process_class, n)


def parse_instance_id(value: str) -> tuple[str, int]:
    """
    Split an instance id into its process class and numeric id.

    The prefix, when present, is dropped: process classes never contain a
    dash, so the class is the component just before the number.

    Raises:
        MalformedIdentifierError: If the trailing component is not a positive
            integer or there is no process class.
    """
    parts = value.split("-")
    if len(parts) < 2 or not parts[-1].isdecimal() or not parts[-2]:
        raise MalformedIdentifierError(value)
    n = int(parts[-1])
    if n < 1:
        raise MalformedIdentifierError(value)
    return parts[-2], n


def pod_labels(
    cluster: FoundationDBCluster,
    process_class: str | None = None,
    instance: str | None = None,
) -> dict[str, str]:
    """
    Label set identifying a cluster's resources.

    Passing only the cluster (or cluster and class) yields the narrower label
    set used as a list selector.
    """
    labels = {CLUSTER_NAME_LABEL: cluster.name}
    if process_class:
        labels[PROCESS_CLASS_LABEL] = process_class
    if instance:
        labels[INSTANCE_ID_LABEL] = instance
    return labels


def label_selector(labels: dict[str, str]) -> str:
    """Render labels as a Kubernetes labelSelector query value."""
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


def pod_name(cluster: FoundationDBCluster, process_class: str, n: int) -> str:
    return f"{cluster.name}-{process_class.replace('_', '-')}-{n}"


def config_map_name(cluster: FoundationDBCluster) -> str:
    override = cluster.spec.config_map
    if override is not None and override.metadata.name:
        return f"{cluster.name}-{override.metadata.name}"
    return f"{cluster.name}-config"


def backup_deployment_name(backup_name: str) -> str:
    return f"{backup_name}-backup-agents"


def sanitize_cluster_name(name: str) -> str:
    """Restrict a name to the charset allowed in a connection string."""
    return _CONNECTION_STRING_NAME.sub("_", name)


def process_class_from_meta(metadata: ObjectMeta) -> str:
    return (metadata.labels or {}).get(PROCESS_CLASS_LABEL, "")


def instance_id_from_meta(metadata: ObjectMeta) -> str:
    return (metadata.labels or {}).get(INSTANCE_ID_LABEL, "")
