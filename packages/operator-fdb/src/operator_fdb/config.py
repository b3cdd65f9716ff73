"""
Operator runtime settings.

Settings are read from environment variables with the FDB_OPERATOR_ prefix,
e.g. FDB_OPERATOR_NAMESPACE=prod or FDB_OPERATOR_RESYNC_INTERVAL_SECONDS=30.
CLI options take precedence over the environment.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class OperatorSettings(BaseSettings):
    """
    Configuration for the reconcile loop and its clients.

    Attributes:
        api_url: Kubernetes API server URL; discovered from the in-cluster
            service account or kubeconfig when unset
        api_token: Bearer token overriding the discovered credentials
        ca_file: CA bundle for an explicit api_url
        kubeconfig: Kubeconfig file; skips in-cluster discovery when set
        kube_context: Kubeconfig context, the current one when unset
        verify_tls: Verify the API server certificate
        namespace: Namespace to watch for clusters
        resync_interval_seconds: Seconds between full resync passes
        reconcile_timeout_seconds: Upper bound on a single reconcile pass
        max_concurrent_reconciles: Clusters reconciled in parallel
        address_poll_seconds: Sleep between checks for a pod IP
        address_wait_attempts: Pod IP checks per instance before config sync
            gives up for this pass
        conflict_retry_attempts: Refetch-and-reapply attempts on conflicts
        sidecar_port: Port the sidecar HTTP server listens on
        sidecar_timeout_seconds: Timeout for sidecar requests
        sidecar_ca_file: CA bundle trusted for sidecar TLS, in addition to
            a cluster's trusted CAs
        sidecar_insecure_skip_verify: Skip sidecar certificate verification
        fdbcli_path: fdbcli binary used by the admin client
        cluster_file_dir: Directory where cluster files are written for fdbcli
        log_level: Root log level
    """

    model_config = {"env_prefix": "FDB_OPERATOR_"}

    api_url: str | None = None
    api_token: str | None = None
    ca_file: Path | None = None
    kubeconfig: Path | None = None
    kube_context: str | None = None
    verify_tls: bool = True
    namespace: str = "default"

    resync_interval_seconds: float = Field(default=60.0, gt=0)
    reconcile_timeout_seconds: float = Field(default=300.0, gt=0)
    max_concurrent_reconciles: int = Field(default=4, ge=1)
    address_poll_seconds: float = Field(default=1.0, gt=0)
    address_wait_attempts: int = Field(default=5, ge=1)
    conflict_retry_attempts: int = Field(default=3, ge=1)

    sidecar_port: int = 8080
    sidecar_timeout_seconds: float = 10.0
    sidecar_ca_file: Path | None = None
    sidecar_insecure_skip_verify: bool = False
    fdbcli_path: str = "fdbcli"
    cluster_file_dir: Path = Path("/tmp/fdb-operator")

    log_level: str = "INFO"
