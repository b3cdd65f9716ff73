"""
Shared config map and fdbmonitor configuration.

The config map holds everything an instance's sidecar copies into the
dynamic-conf volume:

- cluster-file: the connection string
- fdbmonitor-conf-{class}: monitor conf template per process class (empty
  until the connection string exists)
- sidecar-conf: JSON capability descriptor for older sidecars
- ca-file: trusted CA bundle, when configured

Monitor conf templates keep $VARIABLE placeholders. The sidecar substitutes
them on the pod; pod_monitor_conf() renders the same substitutions for one
pod so the operator can push it directly.
"""

import json
import re

from operator_fdb.builder.hashing import json_hash
from operator_fdb.builder.pods import (
    DATA_DIR,
    DYNAMIC_CONF_DIR,
    FDB_PORT,
    TRACE_LOG_DIR,
    fault_domain_policy,
    substitution_variables,
)
from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.naming import (
    CLUSTER_NAME_LABEL,
    config_map_name,
    instance_id_from_meta,
    process_class_from_meta,
)
from operator_fdb.resources import ConfigMap, ObjectMeta, Pod

_PLACEHOLDER = re.compile(r"\$(\w+)")


def monitor_conf(cluster: FoundationDBCluster, process_class: str) -> str:
    """Build the fdbmonitor.conf template for a process class."""
    zone_variable = fault_domain_policy(cluster).zone_variable
    zone = f"${zone_variable}" if zone_variable else "$FDB_ZONE_ID"

    lines = [
        "[general]",
        "kill_on_configuration_change = false",
        "restart_delay = 60",
        "[fdbserver.1]",
        f"command = {DYNAMIC_CONF_DIR}/bin/{cluster.spec.version}/fdbserver",
        f"cluster_file = {DATA_DIR}/fdb.cluster",
        f"seed_cluster_file = {DYNAMIC_CONF_DIR}/fdb.cluster",
        f"public_address = $FDB_PUBLIC_IP:{FDB_PORT}",
        f"class = {process_class}",
        f"datadir = {DATA_DIR}",
        f"logdir = {TRACE_LOG_DIR}",
        f"loggroup = {cluster.name}",
        "locality_instance_id = $FDB_INSTANCE_ID",
        "locality_machineid = $FDB_MACHINE_ID",
        f"locality_zoneid = {zone}",
    ]
    lines.extend(cluster.spec.custom_parameters or [])
    return "\n".join(lines)


def _pod_field(pod: Pod, field_path: str | None) -> str | None:
    if field_path is None:
        return None
    value = pod.to_api()
    for part in field_path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value if isinstance(value, str) else None


def pod_monitor_conf(cluster: FoundationDBCluster, pod: Pod) -> str:
    """
    Render the monitor conf for one running pod.

    Placeholders the pod can resolve (address, hostname, identity) are
    substituted; anything else, such as custom sidecar variables, is kept
    for the sidecar to fill in.
    """
    policy = fault_domain_policy(cluster)
    values = {
        "FDB_PUBLIC_IP": pod.status.pod_ip if pod.status else None,
        "HOSTNAME": pod.metadata.name,
        "FDB_INSTANCE_ID": instance_id_from_meta(pod.metadata),
        "FDB_MACHINE_ID": _pod_field(pod, policy.machine_field),
        "FDB_ZONE_ID": policy.zone_value or _pod_field(pod, policy.zone_field),
    }
    template = monitor_conf(cluster, process_class_from_meta(pod.metadata))
    return _PLACEHOLDER.sub(lambda match: values.get(match.group(1)) or match.group(0), template)


def sidecar_conf(cluster: FoundationDBCluster) -> str:
    copy_files = ["fdb.cluster"]
    if cluster.spec.trusted_cas:
        copy_files.append("ca.pem")
    conf = {
        "COPY_BINARIES": ["fdbserver", "fdbcli"],
        "COPY_FILES": copy_files,
        "COPY_LIBRARIES": [],
        "INPUT_MONITOR_CONF": "fdbmonitor.conf",
    }
    variables = substitution_variables(cluster)
    if variables:
        conf["ADDITIONAL_SUBSTITUTIONS"] = variables
    return json.dumps(conf, sort_keys=True, separators=(",", ":"))


def build_config_map(cluster: FoundationDBCluster) -> ConfigMap:
    override = cluster.spec.config_map
    override_meta = override.metadata if override is not None else ObjectMeta()
    connection_string = cluster.spec.connection_string

    data = dict(override.data or {}) if override is not None else {}
    data["cluster-file"] = connection_string
    for process_class in cluster.process_classes():
        key = f"fdbmonitor-conf-{process_class}"
        data[key] = monitor_conf(cluster, process_class) if connection_string else ""
    data["sidecar-conf"] = sidecar_conf(cluster)
    if cluster.spec.trusted_cas:
        data["ca-file"] = "\n".join(cluster.spec.trusted_cas)

    return ConfigMap(
        metadata=ObjectMeta(
            name=config_map_name(cluster),
            namespace=cluster.namespace,
            labels={**(override_meta.labels or {}), CLUSTER_NAME_LABEL: cluster.name},
            annotations=dict(override_meta.annotations) if override_meta.annotations else None,
            owner_references=[cluster.owner_reference()],
        ),
        data=data,
    )


def config_map_hash(config_map: ConfigMap) -> str:
    """Hash stamped on instances once their dynamic conf is in sync."""
    return json_hash(config_map.data or {})
