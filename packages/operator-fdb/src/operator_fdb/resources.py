"""
Pydantic models for the Kubernetes resources the operator manages.

These models mirror the subset of the Kubernetes API that the reconciliation
engine reads and writes: pods, persistent volume claims, config maps,
deployments and events. Field names are snake_case in Python and camelCase on
the wire (populate by either name). Unknown fields are kept as extras so that
a read-modify-write round trip through the API server does not drop data the
operator does not model.

Every field defaults to None so that "unset" is distinguishable from an
explicit value. The layered override merge in operator_fdb.builder.merge
relies on this distinction.

Example:
    pod = Pod.model_validate(api_response.json())
    print(pod.metadata.name, pod.status.pod_ip)
    payload = pod.to_api()  # camelCase dict without None values
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class KubeModel(BaseModel):
    """Base model with camelCase aliases and pass-through extras."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_api(self) -> dict[str, Any]:
        """Serialize to the JSON shape the API server expects."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Metadata


class OwnerReference(KubeModel):
    api_version: str | None = None
    kind: str | None = None
    name: str | None = None
    uid: str | None = None
    controller: bool | None = None
    block_owner_deletion: bool | None = None


class ObjectMeta(KubeModel):
    name: str | None = None
    generate_name: str | None = None
    namespace: str | None = None
    uid: str | None = None
    resource_version: str | None = None
    generation: int | None = None
    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None
    owner_references: list[OwnerReference] | None = None
    deletion_timestamp: str | None = None


class ObjectReference(KubeModel):
    api_version: str | None = None
    kind: str | None = None
    name: str | None = None
    namespace: str | None = None
    uid: str | None = None
    resource_version: str | None = None


class LabelSelector(KubeModel):
    match_labels: dict[str, str] | None = None


# Containers


class ObjectFieldSelector(KubeModel):
    field_path: str
    api_version: str | None = None


class EnvVarSource(KubeModel):
    field_ref: ObjectFieldSelector | None = None


class EnvVar(KubeModel):
    name: str
    value: str | None = None
    value_from: EnvVarSource | None = None


class VolumeMount(KubeModel):
    name: str
    mount_path: str
    sub_path: str | None = None
    read_only: bool | None = None


class ResourceRequirements(KubeModel):
    limits: dict[str, str] | None = None
    requests: dict[str, str] | None = None


class SecurityContext(KubeModel):
    read_only_root_filesystem: bool | None = None
    run_as_user: int | None = None
    run_as_group: int | None = None
    run_as_non_root: bool | None = None
    privileged: bool | None = None
    allow_privilege_escalation: bool | None = None


class PodSecurityContext(KubeModel):
    fs_group: int | None = None
    run_as_user: int | None = None
    run_as_group: int | None = None
    run_as_non_root: bool | None = None


class TCPSocketAction(KubeModel):
    port: int | str


class Probe(KubeModel):
    tcp_socket: TCPSocketAction | None = None
    initial_delay_seconds: int | None = None
    period_seconds: int | None = None
    timeout_seconds: int | None = None
    failure_threshold: int | None = None


class Container(KubeModel):
    name: str
    image: str | None = None
    image_pull_policy: str | None = None
    command: list[str] | None = None
    args: list[str] | None = None
    env: list[EnvVar] | None = None
    volume_mounts: list[VolumeMount] | None = None
    resources: ResourceRequirements | None = None
    security_context: SecurityContext | None = None
    readiness_probe: Probe | None = None
    liveness_probe: Probe | None = None


# Volumes


class KeyToPath(KubeModel):
    key: str
    path: str


class ConfigMapVolumeSource(KubeModel):
    name: str | None = None
    items: list[KeyToPath] | None = None
    default_mode: int | None = None


class SecretVolumeSource(KubeModel):
    secret_name: str | None = None
    items: list[KeyToPath] | None = None


class PersistentVolumeClaimVolumeSource(KubeModel):
    claim_name: str
    read_only: bool | None = None


class EmptyDirVolumeSource(KubeModel):
    medium: str | None = None
    size_limit: str | None = None


class Volume(KubeModel):
    name: str
    config_map: ConfigMapVolumeSource | None = None
    secret: SecretVolumeSource | None = None
    persistent_volume_claim: PersistentVolumeClaimVolumeSource | None = None
    empty_dir: EmptyDirVolumeSource | None = None


# Scheduling


class PodAffinityTerm(KubeModel):
    label_selector: LabelSelector | None = None
    topology_key: str


class WeightedPodAffinityTerm(KubeModel):
    weight: int
    pod_affinity_term: PodAffinityTerm


class PodAntiAffinity(KubeModel):
    preferred_during_scheduling_ignored_during_execution: (
        list[WeightedPodAffinityTerm] | None
    ) = None


class Affinity(KubeModel):
    pod_anti_affinity: PodAntiAffinity | None = None


# Pods


class PodSpec(KubeModel):
    init_containers: list[Container] | None = None
    containers: list[Container] | None = None
    volumes: list[Volume] | None = None
    affinity: Affinity | None = None
    node_name: str | None = None
    node_selector: dict[str, str] | None = None
    service_account_name: str | None = None
    automount_service_account_token: bool | None = None
    security_context: PodSecurityContext | None = None
    tolerations: list[dict[str, Any]] | None = None
    restart_policy: str | None = None


class PodTemplateSpec(KubeModel):
    metadata: ObjectMeta | None = None
    spec: PodSpec | None = None


class PodStatus(KubeModel):
    phase: str | None = None
    pod_ip: str | None = Field(default=None, alias="podIP")
    host_ip: str | None = Field(default=None, alias="hostIP")


class Pod(KubeModel):
    api_version: str = "v1"
    kind: str = "Pod"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec | None = None
    status: PodStatus | None = None


# Storage


class PersistentVolumeClaimSpec(KubeModel):
    access_modes: list[str] | None = None
    resources: ResourceRequirements | None = None
    storage_class_name: str | None = None
    volume_mode: str | None = None
    volume_name: str | None = None


class PersistentVolumeClaim(KubeModel):
    api_version: str = "v1"
    kind: str = "PersistentVolumeClaim"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PersistentVolumeClaimSpec | None = None


# Config


class ConfigMap(KubeModel):
    api_version: str = "v1"
    kind: str = "ConfigMap"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    data: dict[str, str] | None = None


# Workloads


class DeploymentSpec(KubeModel):
    replicas: int | None = None
    selector: LabelSelector | None = None
    template: PodTemplateSpec | None = None


class Deployment(KubeModel):
    api_version: str = "apps/v1"
    kind: str = "Deployment"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: DeploymentSpec | None = None


# Events


class Event(KubeModel):
    api_version: str = "v1"
    kind: str = "Event"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    involved_object: ObjectReference
    reason: str
    message: str
    type: str = "Normal"
    count: int | None = None
