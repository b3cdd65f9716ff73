"""
Custom resource models for FoundationDB clusters and backups.

FoundationDBCluster is the declarative desired state the reconciliation
engine drives the platform toward. The operator is the only writer of the
spec fields it owns (replication defaults, connection_string, configured,
next_instance_id) and of the status subresource.

Several spec fields are deprecated flat overrides kept for compatibility
(containers, init_containers, volumes, resources, volume_size,
storage_class, pod_labels, pod_security_context,
automount_service_account_token, main_container, sidecar_container). They
have lower precedence than pod_template and per-class processes settings.
"""

from pydantic import Field

from operator_fdb.resources import (
    ConfigMap,
    Container,
    EnvVar,
    KubeModel,
    ObjectMeta,
    OwnerReference,
    PersistentVolumeClaim,
    PodSecurityContext,
    PodTemplateSpec,
    ResourceRequirements,
    SecurityContext,
    Volume,
    VolumeMount,
)
from operator_fdb.versions import FdbVersion

API_VERSION = "apps.foundationdb.org/v1beta1"

# Default per-class settings, applied before the class-specific entry
GENERAL_PROCESS_CLASS = "general"

# Order in which instances are added; unknown classes follow, sorted
PROCESS_CLASSES = (
    "storage",
    "log",
    "transaction",
    "stateless",
    "proxy",
    "resolver",
    "master",
    "cluster_controller",
)

STATEFUL_PROCESS_CLASSES = frozenset({"storage", "log", "transaction"})

DEFAULT_REPLICATION_MODE = "double"
DEFAULT_STORAGE_ENGINE = "ssd"

_COORDINATOR_COUNTS = {
    "single": 1,
    "double": 3,
    "triple": 5,
}


class ProcessSettings(KubeModel):
    """Per-process-class overrides."""

    pod_template: PodTemplateSpec | None = None
    volume_claim: PersistentVolumeClaim | None = None


class FoundationDBClusterFaultDomain(KubeModel):
    """
    Fault-domain policy for spreading processes.

    Attributes:
        key: Topology key for anti-affinity; "foundationdb.org/none" disables it
        value: Literal zone id shared by every process (cross-cluster replication)
        value_from: Source of the zone id; "$VAR" substitutes an env variable,
            anything else is a field path on the pod
    """

    key: str | None = None
    value: str | None = None
    value_from: str | None = None


class ContainerOverrides(KubeModel):
    """Deprecated flat overrides for the main or sidecar container."""

    env: list[EnvVar] | None = None
    volume_mounts: list[VolumeMount] | None = None
    security_context: SecurityContext | None = None
    enable_tls: bool | None = None
    peer_verification_rules: str | None = None


class DatabaseConfiguration(KubeModel):
    """Database-level configuration applied through the admin client."""

    replication_mode: str = DEFAULT_REPLICATION_MODE
    storage_engine: str = DEFAULT_STORAGE_ENGINE

    def configure_args(self) -> str:
        return f"{self.replication_mode} {self.storage_engine}"


class PendingRemovalState(KubeModel):
    """
    Snapshot taken when an instance is marked for replacement.

    Attributes:
        pod_name: Name of the pod backing the instance
        address: Address to exclude before the instance is removed
        exclusion_started: Set by the drain workflow once exclusion begins
        exclusion_complete: Set by the drain workflow once exclusion finishes
    """

    pod_name: str | None = None
    address: str | None = None
    exclusion_started: bool = False
    exclusion_complete: bool = False


class FoundationDBClusterSpec(KubeModel):
    version: str
    sidecar_versions: dict[str, int] | None = None
    sidecar_version: int | None = None

    process_counts: dict[str, int] | None = None
    processes: dict[str, ProcessSettings] | None = None
    pod_template: PodTemplateSpec | None = None
    volume_claim: PersistentVolumeClaim | None = None
    config_map: ConfigMap | None = None

    # Deprecated flat overrides
    volume_size: str | None = None
    storage_class: str | None = None
    containers: list[Container] | None = None
    init_containers: list[Container] | None = None
    volumes: list[Volume] | None = None
    resources: ResourceRequirements | None = None
    pod_labels: dict[str, str] | None = None
    pod_security_context: PodSecurityContext | None = None
    automount_service_account_token: bool | None = None
    main_container: ContainerOverrides | None = None
    sidecar_container: ContainerOverrides | None = None

    replication_mode: str | None = None
    storage_engine: str | None = None
    fault_domain: FoundationDBClusterFaultDomain | None = None
    trusted_cas: list[str] | None = Field(default=None, alias="trustedCAs")
    custom_parameters: list[str] | None = None
    sidecar_variables: list[str] | None = None
    instance_id_prefix: str | None = Field(default=None, alias="instanceIDPrefix")

    connection_string: str = ""
    configured: bool = False
    next_instance_id: int = Field(default=0, alias="nextInstanceID")
    update_pods_by_replacement: bool = False


class FoundationDBClusterStatus(KubeModel):
    pending_removals: dict[str, PendingRemovalState] | None = None
    generations_reconciled: int | None = None


class FoundationDBCluster(KubeModel):
    """
    A FoundationDB cluster custom resource.

    Example:
        cluster = FoundationDBCluster.model_validate(api_response.json())
        for process_class in cluster.process_classes():
            print(process_class, cluster.desired_process_count(process_class))
    """

    api_version: str = API_VERSION
    kind: str = "FoundationDBCluster"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: FoundationDBClusterSpec
    status: FoundationDBClusterStatus = Field(default_factory=FoundationDBClusterStatus)

    @property
    def name(self) -> str:
        return self.metadata.name or ""

    @property
    def namespace(self) -> str:
        return self.metadata.namespace or "default"

    def database_configuration(self) -> DatabaseConfiguration:
        return DatabaseConfiguration(
            replication_mode=self.spec.replication_mode or DEFAULT_REPLICATION_MODE,
            storage_engine=self.spec.storage_engine or DEFAULT_STORAGE_ENGINE,
        )

    def desired_coordinator_count(self) -> int:
        """Number of coordinators required by the replication mode."""
        mode = self.spec.replication_mode or DEFAULT_REPLICATION_MODE
        return _COORDINATOR_COUNTS.get(mode, 3)

    def desired_process_count(self, process_class: str) -> int:
        """
        Desired number of instances for a process class.

        Explicit process_counts entries win. Storage defaults to enough
        instances to recruit the coordinators; every other class defaults
        to zero.
        """
        counts = self.spec.process_counts or {}
        if process_class in counts:
            return max(counts[process_class], 0)
        if process_class == "storage":
            return self.desired_coordinator_count()
        return 0

    def process_classes(self) -> list[str]:
        """Known classes in fixed order, then any extra configured classes."""
        extra = sorted(
            name
            for name in (self.spec.process_counts or {})
            if name not in PROCESS_CLASSES
        )
        return list(PROCESS_CLASSES) + extra

    def process_settings(self, process_class: str) -> list[ProcessSettings]:
        """Per-class override layers in ascending precedence."""
        processes = self.spec.processes or {}
        keys = dict.fromkeys((GENERAL_PROCESS_CLASS, process_class))
        return [processes[key] for key in keys if key in processes]

    def sidecar_version_for(self, version: str) -> int:
        if self.spec.sidecar_versions and version in self.spec.sidecar_versions:
            return self.spec.sidecar_versions[version]
        if self.spec.sidecar_version:
            return self.spec.sidecar_version
        return 1

    @property
    def sidecar_tls_requested(self) -> bool:
        return bool(self.spec.sidecar_container and self.spec.sidecar_container.enable_tls)

    @property
    def sidecar_tls_enabled(self) -> bool:
        """TLS was requested and the sidecar version can serve it."""
        return self.sidecar_tls_requested and FdbVersion.parse(self.spec.version).has_sidecar_cli_args

    @property
    def peer_verification_rules(self) -> str:
        if self.spec.sidecar_container and self.spec.sidecar_container.peer_verification_rules:
            return self.spec.sidecar_container.peer_verification_rules
        return ""

    def owner_reference(self) -> OwnerReference:
        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.name,
            uid=self.metadata.uid,
            controller=True,
        )


class FoundationDBBackupSpec(KubeModel):
    version: str
    cluster_name: str
    agent_count: int | None = None
    pod_template_spec: PodTemplateSpec | None = None


class FoundationDBBackup(KubeModel):
    """A backup agent deployment attached to a cluster."""

    api_version: str = API_VERSION
    kind: str = "FoundationDBBackup"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: FoundationDBBackupSpec

    @property
    def name(self) -> str:
        return self.metadata.name or ""

    @property
    def namespace(self) -> str:
        return self.metadata.namespace or "default"

    def desired_agent_count(self) -> int:
        if self.spec.agent_count is None:
            return 2
        return self.spec.agent_count
