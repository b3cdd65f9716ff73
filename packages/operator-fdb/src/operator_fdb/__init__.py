"""
operator-fdb

Reconciliation engine for FoundationDB clusters on Kubernetes. This package
provides:

- Resource models: FoundationDBCluster, FoundationDBBackup and the subset of
  Kubernetes objects the operator builds
- Builder: pure functions from a cluster spec to pods, claims and config maps
- Reconciler: the ordered, idempotent step pipeline for one cluster
- Clients: Kubernetes API, per-pod sidecar and fdbcli admin capabilities
- CLI infrastructure: Typer-based command structure
"""

__version__ = "0.1.0"

# Re-export public types for convenient imports
from operator_fdb.cluster import (
    DatabaseConfiguration,
    FoundationDBBackup,
    FoundationDBCluster,
    FoundationDBClusterSpec,
    FoundationDBClusterStatus,
    PendingRemovalState,
)
from operator_fdb.config import OperatorSettings
from operator_fdb.errors import (
    AddressNotAssignedError,
    AdminConfigurationError,
    ConflictingUpdateError,
    InsufficientInstancesError,
    MalformedIdentifierError,
    OperatorError,
)
from operator_fdb.loop import ReconcileLoop
from operator_fdb.reconcile import BackupReconciler, Reconciler, ReconcileResult

__all__ = [
    "__version__",
    # Cluster resources
    "FoundationDBCluster",
    "FoundationDBClusterSpec",
    "FoundationDBClusterStatus",
    "FoundationDBBackup",
    "DatabaseConfiguration",
    "PendingRemovalState",
    # Reconciliation
    "Reconciler",
    "BackupReconciler",
    "ReconcileResult",
    "ReconcileLoop",
    # Settings
    "OperatorSettings",
    # Errors
    "OperatorError",
    "MalformedIdentifierError",
    "AddressNotAssignedError",
    "InsufficientInstancesError",
    "ConflictingUpdateError",
    "AdminConfigurationError",
]
