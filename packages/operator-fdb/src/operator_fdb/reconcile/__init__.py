"""
Reconciliation engine.

The Reconciler runs an ordered pipeline of idempotent steps for one cluster
object. Each step compares live platform state with the desired state from
operator_fdb.builder and performs only the mutations needed for its own
concern.
"""

from operator_fdb.reconcile.add_instances import AddInstances
from operator_fdb.reconcile.backup import BackupReconciler
from operator_fdb.reconcile.bootstrap import GenerateInitialClusterFile, build_connection_string
from operator_fdb.reconcile.concurrency import fan_out, join_all
from operator_fdb.reconcile.config_map import UpdateConfigMap
from operator_fdb.reconcile.database import UpdateDatabaseConfiguration
from operator_fdb.reconcile.defaults import SetDefaultValues
from operator_fdb.reconcile.dynamic_conf import SyncDynamicConfig
from operator_fdb.reconcile.instances import Instance, list_instances
from operator_fdb.reconcile.pipeline import Reconciler, default_steps
from operator_fdb.reconcile.removals import (
    MarkPendingRemoval,
    NoAction,
    RemovalReason,
    ReplaceMisconfiguredInstances,
    decide_removal,
)
from operator_fdb.reconcile.retry import RetryConfig, update_cluster, update_with_retry
from operator_fdb.reconcile.types import (
    ReconcileContext,
    ReconcileResult,
    ReconcileStep,
    StepResult,
)

__all__ = [
    # Pipeline
    "Reconciler",
    "BackupReconciler",
    "default_steps",
    # Steps
    "SetDefaultValues",
    "UpdateConfigMap",
    "AddInstances",
    "SyncDynamicConfig",
    "ReplaceMisconfiguredInstances",
    "GenerateInitialClusterFile",
    "UpdateDatabaseConfiguration",
    # Pending removal
    "decide_removal",
    "NoAction",
    "MarkPendingRemoval",
    "RemovalReason",
    # Types
    "ReconcileContext",
    "ReconcileResult",
    "ReconcileStep",
    "StepResult",
    "Instance",
    "list_instances",
    # Helpers
    "build_connection_string",
    "fan_out",
    "join_all",
    "RetryConfig",
    "update_cluster",
    "update_with_retry",
]
