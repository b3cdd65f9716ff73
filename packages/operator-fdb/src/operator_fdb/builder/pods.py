"""
Desired pod specs for FoundationDB instances.

A pod spec is a pure function of (cluster, process class, numeric id). It is
built in three phases:

1. Built-in template: init, main and sidecar containers in fixed order,
   the four base volumes, TLS args and fault-domain anti-affinity.
2. Override layers in ascending precedence, merged by
   operator_fdb.builder.merge:
   (b) deprecated flat fields (containers, init_containers, volumes,
       resources, pod_labels, main_container, sidecar_container, ...)
   (c) spec.pod_template
   (d) processes["general"].pod_template, then processes[class].pod_template
3. Finalize: identity env appended to every container, TLS peer rules and
   CA env to the built-in ones, then defaults filled where nothing set a
   value.

Because every phase is deterministic and order-stable, pod_spec_hash() is
reproducible across runs and is what the last-applied-spec annotation
stores.

Example:
    spec = build_pod_spec(cluster, "storage", 1)
    pod = build_pod(cluster, "storage", 1)
    assert pod.metadata.annotations[LAST_SPEC_KEY] == pod_spec_hash(cluster, "storage", 1)
"""

from dataclasses import dataclass

from operator_fdb.builder.claims import build_volume_claim
from operator_fdb.builder.hashing import json_hash
from operator_fdb.builder.merge import merge_layers
from operator_fdb.cluster import FoundationDBCluster, FoundationDBClusterFaultDomain
from operator_fdb.naming import (
    CLUSTER_NAME_LABEL,
    LAST_SPEC_KEY,
    PROCESS_CLASS_LABEL,
    config_map_name,
    desired_instance_id,
    pod_labels,
    pod_name,
)
from operator_fdb.resources import (
    Affinity,
    ConfigMapVolumeSource,
    Container,
    EmptyDirVolumeSource,
    EnvVar,
    EnvVarSource,
    KeyToPath,
    LabelSelector,
    ObjectFieldSelector,
    ObjectMeta,
    PersistentVolumeClaimVolumeSource,
    Pod,
    PodAffinityTerm,
    PodAntiAffinity,
    PodSpec,
    PodTemplateSpec,
    Probe,
    ResourceRequirements,
    SecurityContext,
    TCPSocketAction,
    Volume,
    VolumeMount,
    WeightedPodAffinityTerm,
)
from operator_fdb.versions import FdbVersion

INIT_CONTAINER = "foundationdb-kubernetes-init"
MAIN_CONTAINER = "foundationdb"
SIDECAR_CONTAINER = "foundationdb-kubernetes-sidecar"
BUILTIN_CONTAINERS = (INIT_CONTAINER, MAIN_CONTAINER, SIDECAR_CONTAINER)

IMAGE_ROOT = "foundationdb"
FDB_PORT = 4500
SIDECAR_PORT = 8080

HOSTNAME_TOPOLOGY_KEY = "kubernetes.io/hostname"
NO_FAULT_DOMAIN_KEY = "foundationdb.org/none"

INPUT_FILES_DIR = "/var/input-files"
OUTPUT_FILES_DIR = "/var/output-files"
DYNAMIC_CONF_DIR = "/var/dynamic-conf"
DATA_DIR = "/var/fdb/data"
TRACE_LOG_DIR = "/var/log/fdb-trace-logs"

DEFAULT_RESOURCES = {"cpu": "1", "memory": "1Gi"}


@dataclass(frozen=True)
class FaultDomainPolicy:
    """
    Where an instance's machine and zone ids come from.

    Attributes:
        machine_field: Pod field path for FDB_MACHINE_ID
        zone_field: Pod field path for FDB_ZONE_ID
        zone_value: Literal FDB_ZONE_ID
        zone_variable: Sidecar substitution variable used as the zone id;
            FDB_ZONE_ID is not set in this case
        topology_key: Anti-affinity topology key, None for no affinity
    """

    machine_field: str
    zone_field: str | None = None
    zone_value: str | None = None
    zone_variable: str | None = None
    topology_key: str | None = None


def fault_domain_policy(cluster: FoundationDBCluster) -> FaultDomainPolicy:
    fault_domain = cluster.spec.fault_domain or FoundationDBClusterFaultDomain()
    key = fault_domain.key or HOSTNAME_TOPOLOGY_KEY

    if key == NO_FAULT_DOMAIN_KEY:
        return FaultDomainPolicy(machine_field="metadata.name", zone_field="metadata.name")
    if fault_domain.value:
        return FaultDomainPolicy(machine_field="spec.nodeName", zone_value=fault_domain.value)
    if fault_domain.value_from and fault_domain.value_from.startswith("$"):
        return FaultDomainPolicy(
            machine_field="spec.nodeName",
            zone_variable=fault_domain.value_from[1:],
            topology_key=key,
        )
    return FaultDomainPolicy(
        machine_field="spec.nodeName",
        zone_field=fault_domain.value_from or "spec.nodeName",
        topology_key=key,
    )


def sidecar_image(cluster: FoundationDBCluster, version: str | None = None) -> str:
    version = version or cluster.spec.version
    build = cluster.sidecar_version_for(version)
    return f"{IMAGE_ROOT}/foundationdb-kubernetes-sidecar:{version}-{build}"


def substitution_variables(cluster: FoundationDBCluster) -> list[str]:
    variables = list(cluster.spec.sidecar_variables or [])
    zone_variable = fault_domain_policy(cluster).zone_variable
    if zone_variable and zone_variable not in variables:
        variables.append(zone_variable)
    return variables


def _field_env(name: str, field_path: str) -> EnvVar:
    return EnvVar(
        name=name,
        value_from=EnvVarSource(field_ref=ObjectFieldSelector(field_path=field_path)),
    )


def _sidecar_args(cluster: FoundationDBCluster, init_mode: bool) -> list[str] | None:
    if not FdbVersion.parse(cluster.spec.version).has_sidecar_cli_args:
        return None

    args = ["--copy-file", "fdb.cluster"]
    if cluster.spec.trusted_cas:
        args += ["--copy-file", "ca.pem"]
    args += [
        "--input-monitor-conf", "fdbmonitor.conf",
        "--copy-binary", "fdbserver",
        "--copy-binary", "fdbcli",
        "--main-container-version", cluster.spec.version,
    ]
    for variable in substitution_variables(cluster):
        args += ["--substitute-variable", variable]
    if init_mode:
        args.append("--init-mode")
    elif cluster.sidecar_tls_enabled:
        args.append("--tls")
    return args


def _sidecar_env(cluster: FoundationDBCluster, init_mode: bool) -> list[EnvVar] | None:
    # Older sidecars read their configuration from config.json instead of args
    if FdbVersion.parse(cluster.spec.version).has_sidecar_cli_args:
        return None
    env = [EnvVar(name="SIDECAR_CONF_DIR", value=INPUT_FILES_DIR)]
    if init_mode:
        env.insert(0, EnvVar(name="COPY_ONCE", value="1"))
    return env


def _builtin_containers(cluster: FoundationDBCluster) -> tuple[Container, Container, Container]:
    sidecar_mounts = [
        VolumeMount(name="config-map", mount_path=INPUT_FILES_DIR),
        VolumeMount(name="dynamic-conf", mount_path=OUTPUT_FILES_DIR),
    ]
    init = Container(
        name=INIT_CONTAINER,
        image=sidecar_image(cluster),
        args=_sidecar_args(cluster, init_mode=True),
        env=_sidecar_env(cluster, init_mode=True),
        volume_mounts=sidecar_mounts,
    )
    main = Container(
        name=MAIN_CONTAINER,
        image=f"{IMAGE_ROOT}/foundationdb:{cluster.spec.version}",
        command=["sh", "-c"],
        args=[
            "fdbmonitor --conffile /var/dynamic-conf/fdbmonitor.conf"
            " --lockfile /var/dynamic-conf/fdbmonitor.lockfile"
        ],
        env=[EnvVar(name="FDB_CLUSTER_FILE", value=f"{DYNAMIC_CONF_DIR}/fdb.cluster")],
        volume_mounts=[
            VolumeMount(name="data", mount_path=DATA_DIR),
            VolumeMount(name="dynamic-conf", mount_path=DYNAMIC_CONF_DIR),
            VolumeMount(name="fdb-trace-logs", mount_path=TRACE_LOG_DIR),
        ],
    )
    sidecar = Container(
        name=SIDECAR_CONTAINER,
        image=sidecar_image(cluster),
        args=_sidecar_args(cluster, init_mode=False),
        env=_sidecar_env(cluster, init_mode=False),
        volume_mounts=[mount.model_copy() for mount in sidecar_mounts],
    )
    return init, main, sidecar


def _builtin_volumes(cluster: FoundationDBCluster, process_class: str, n: int) -> list[Volume]:
    claim = build_volume_claim(cluster, process_class, n)
    if claim is None:
        data = Volume(name="data", empty_dir=EmptyDirVolumeSource())
    else:
        data = Volume(
            name="data",
            persistent_volume_claim=PersistentVolumeClaimVolumeSource(claim_name=claim.metadata.name),
        )

    items = [
        KeyToPath(key=f"fdbmonitor-conf-{process_class}", path="fdbmonitor.conf"),
        KeyToPath(key="cluster-file", path="fdb.cluster"),
    ]
    if cluster.spec.trusted_cas:
        items.append(KeyToPath(key="ca-file", path="ca.pem"))
    if not FdbVersion.parse(cluster.spec.version).has_sidecar_cli_args:
        items.append(KeyToPath(key="sidecar-conf", path="config.json"))

    return [
        data,
        Volume(name="dynamic-conf", empty_dir=EmptyDirVolumeSource()),
        Volume(
            name="config-map",
            config_map=ConfigMapVolumeSource(name=config_map_name(cluster), items=items),
        ),
        Volume(name="fdb-trace-logs", empty_dir=EmptyDirVolumeSource()),
    ]


def _affinity(cluster: FoundationDBCluster, process_class: str) -> Affinity | None:
    topology_key = fault_domain_policy(cluster).topology_key
    if topology_key is None:
        return None
    term = PodAffinityTerm(
        topology_key=topology_key,
        label_selector=LabelSelector(
            match_labels={
                CLUSTER_NAME_LABEL: cluster.name,
                PROCESS_CLASS_LABEL: process_class,
            }
        ),
    )
    return Affinity(
        pod_anti_affinity=PodAntiAffinity(
            preferred_during_scheduling_ignored_during_execution=[
                WeightedPodAffinityTerm(weight=1, pod_affinity_term=term)
            ]
        )
    )


def _builtin_template(cluster: FoundationDBCluster, process_class: str, n: int) -> PodTemplateSpec:
    init, main, sidecar = _builtin_containers(cluster)
    return PodTemplateSpec(
        metadata=ObjectMeta(),
        spec=PodSpec(
            init_containers=[init],
            containers=[main, sidecar],
            volumes=_builtin_volumes(cluster, process_class, n),
            affinity=_affinity(cluster, process_class),
        ),
    )


def _deprecated_layer(cluster: FoundationDBCluster) -> PodTemplateSpec | None:
    spec = cluster.spec
    containers = list(spec.containers or [])

    main = Container(name=MAIN_CONTAINER, resources=spec.resources)
    if spec.main_container:
        main.env = spec.main_container.env
        main.volume_mounts = spec.main_container.volume_mounts
        main.security_context = spec.main_container.security_context
    if main.model_dump(exclude_none=True).keys() - {"name"}:
        containers.append(main)

    if spec.sidecar_container:
        sidecar = Container(
            name=SIDECAR_CONTAINER,
            env=spec.sidecar_container.env,
            volume_mounts=spec.sidecar_container.volume_mounts,
            security_context=spec.sidecar_container.security_context,
        )
        if sidecar.model_dump(exclude_none=True).keys() - {"name"}:
            containers.append(sidecar)

    pod_spec = PodSpec(
        containers=containers or None,
        init_containers=spec.init_containers,
        volumes=spec.volumes,
        security_context=spec.pod_security_context,
        automount_service_account_token=spec.automount_service_account_token,
    )
    metadata = ObjectMeta(labels=spec.pod_labels) if spec.pod_labels else None
    if metadata is None and not pod_spec.model_dump(exclude_none=True):
        return None
    return PodTemplateSpec(metadata=metadata, spec=pod_spec)


def override_layers(cluster: FoundationDBCluster, process_class: str) -> list[PodTemplateSpec | None]:
    """Pod template overrides in ascending precedence."""
    layers = [_deprecated_layer(cluster), cluster.spec.pod_template]
    layers += [settings.pod_template for settings in cluster.process_settings(process_class)]
    return layers


def identity_env(cluster: FoundationDBCluster, process_class: str, n: int) -> list[EnvVar]:
    policy = fault_domain_policy(cluster)
    env = [
        _field_env("FDB_PUBLIC_IP", "status.podIP"),
        _field_env("FDB_MACHINE_ID", policy.machine_field),
    ]
    if policy.zone_value is not None:
        env.append(EnvVar(name="FDB_ZONE_ID", value=policy.zone_value))
    elif policy.zone_field is not None:
        env.append(_field_env("FDB_ZONE_ID", policy.zone_field))
    env.append(EnvVar(name="FDB_INSTANCE_ID", value=desired_instance_id(cluster, process_class, n)))
    return env


def _append_env(container: Container, env: list[EnvVar]) -> None:
    existing = {item.name for item in container.env or []}
    additions = [item.model_copy(deep=True) for item in env if item.name not in existing]
    if additions:
        container.env = list(container.env or []) + additions


def _finalize(cluster: FoundationDBCluster, process_class: str, n: int, spec: PodSpec) -> None:
    every_container = (spec.init_containers or []) + (spec.containers or [])
    identity = identity_env(cluster, process_class, n)
    for container in every_container:
        _append_env(container, identity)

    containers = {
        container.name: container
        for container in every_container
        if container.name in BUILTIN_CONTAINERS
    }

    main = containers.get(MAIN_CONTAINER)
    sidecar = containers.get(SIDECAR_CONTAINER)

    if sidecar is not None and cluster.sidecar_tls_enabled:
        _append_env(sidecar, [EnvVar(name="FDB_TLS_VERIFY_PEERS", value=cluster.peer_verification_rules)])

    if cluster.spec.trusted_cas:
        if main is not None:
            _append_env(main, [EnvVar(name="FDB_TLS_CA_FILE", value=f"{DYNAMIC_CONF_DIR}/ca.pem")])
        if sidecar is not None:
            _append_env(sidecar, [EnvVar(name="FDB_TLS_CA_FILE", value=f"{INPUT_FILES_DIR}/ca.pem")])

    if main is not None:
        resources = main.resources or ResourceRequirements()
        if resources.limits is None:
            resources.limits = dict(DEFAULT_RESOURCES)
        if resources.requests is None:
            resources.requests = dict(DEFAULT_RESOURCES)
        main.resources = resources

    for container in (main, sidecar):
        if container is None:
            continue
        security = container.security_context or SecurityContext()
        if security.read_only_root_filesystem is None:
            security.read_only_root_filesystem = True
        container.security_context = security

    if sidecar is not None and sidecar.readiness_probe is None:
        sidecar.readiness_probe = Probe(tcp_socket=TCPSocketAction(port=SIDECAR_PORT))


def build_pod_template(cluster: FoundationDBCluster, process_class: str, n: int) -> PodTemplateSpec:
    """Resolve the full pod template, including override metadata."""
    template = merge_layers(
        _builtin_template(cluster, process_class, n),
        override_layers(cluster, process_class),
    )
    if template.spec is None:
        template.spec = PodSpec()
    _finalize(cluster, process_class, n, template.spec)
    return template


def build_pod_spec(cluster: FoundationDBCluster, process_class: str, n: int) -> PodSpec:
    return build_pod_template(cluster, process_class, n).spec


def pod_spec_hash(
    cluster: FoundationDBCluster,
    process_class: str,
    n: int,
    spec: PodSpec | None = None,
) -> str:
    """
    Content hash of a resolved pod spec.

    Args:
        cluster: Cluster the instance belongs to
        process_class: Process class of the instance
        n: Numeric instance id
        spec: Already-built spec to hash instead of building the desired one

    Returns:
        sha256 hex digest stored in the last-applied-spec annotation
    """
    if spec is None:
        spec = build_pod_spec(cluster, process_class, n)
    return json_hash(spec)


def build_pod(cluster: FoundationDBCluster, process_class: str, n: int) -> Pod:
    """Build the pod for a new instance, labeled and stamped with its spec hash."""
    template = build_pod_template(cluster, process_class, n)
    override_meta = template.metadata or ObjectMeta()
    instance = desired_instance_id(cluster, process_class, n)

    annotations = dict(override_meta.annotations or {})
    annotations[LAST_SPEC_KEY] = pod_spec_hash(cluster, process_class, n, template.spec)

    return Pod(
        metadata=ObjectMeta(
            name=pod_name(cluster, process_class, n),
            namespace=cluster.namespace,
            labels={**(override_meta.labels or {}), **pod_labels(cluster, process_class, instance)},
            annotations=annotations,
            owner_references=[cluster.owner_reference()],
        ),
        spec=template.spec,
    )
