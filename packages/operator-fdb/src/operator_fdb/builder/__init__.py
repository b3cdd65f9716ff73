"""
Desired-state resource builder.

Pure functions from a FoundationDBCluster (and instance coordinates) to the
resources the operator should see on the platform, plus the content hashes
used to detect drift on live objects.
"""

from operator_fdb.builder.backup import build_backup_deployment
from operator_fdb.builder.claims import build_volume_claim, claim_spec_hash
from operator_fdb.builder.config_map import (
    build_config_map,
    config_map_hash,
    monitor_conf,
    pod_monitor_conf,
)
from operator_fdb.builder.hashing import json_hash
from operator_fdb.builder.merge import merge, merge_layers
from operator_fdb.builder.pods import (
    INIT_CONTAINER,
    MAIN_CONTAINER,
    SIDECAR_CONTAINER,
    build_pod,
    build_pod_spec,
    build_pod_template,
    fault_domain_policy,
    pod_spec_hash,
)

__all__ = [
    # Pods
    "build_pod",
    "build_pod_spec",
    "build_pod_template",
    "pod_spec_hash",
    "fault_domain_policy",
    "INIT_CONTAINER",
    "MAIN_CONTAINER",
    "SIDECAR_CONTAINER",
    # Claims
    "build_volume_claim",
    "claim_spec_hash",
    # Config map
    "build_config_map",
    "config_map_hash",
    "monitor_conf",
    "pod_monitor_conf",
    # Backup
    "build_backup_deployment",
    # Merge and hashing
    "merge",
    "merge_layers",
    "json_hash",
]
