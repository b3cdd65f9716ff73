"""
External collaborators of the reconciliation engine.

- PlatformClient: typed resource operations on the platform API
- SidecarClient: per-instance file push and address lookup
- AdminClient: database configuration through fdbcli

API server discovery (in-cluster service account or kubeconfig) lives in
kube_config.
"""

from operator_fdb.clients.admin import (
    AdminClient,
    AdminClientFactory,
    CliAdminClient,
    CliAdminClientFactory,
)
from operator_fdb.clients.factory import (
    OperatorClients,
    create_clients,
    create_kubernetes_client,
    create_sidecar_factory,
)
from operator_fdb.clients.kube_config import load_kube_configuration
from operator_fdb.clients.platform import KubernetesClient, PlatformClient
from operator_fdb.clients.sidecar import (
    HttpSidecarClient,
    HttpSidecarClientFactory,
    SidecarClient,
    SidecarClientFactory,
)

__all__ = [
    # Protocols
    "PlatformClient",
    "SidecarClient",
    "SidecarClientFactory",
    "AdminClient",
    "AdminClientFactory",
    # Implementations
    "KubernetesClient",
    "HttpSidecarClient",
    "HttpSidecarClientFactory",
    "CliAdminClient",
    "CliAdminClientFactory",
    # Factory
    "OperatorClients",
    "create_clients",
    "create_kubernetes_client",
    "create_sidecar_factory",
    "load_kube_configuration",
]
