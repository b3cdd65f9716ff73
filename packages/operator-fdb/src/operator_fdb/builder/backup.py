"""
Desired backup agent deployment.

Backup agents run as a plain deployment next to the cluster. The pod
template has one init container that copies the cluster file and one
long-running backup_agent container. A single override layer,
spec.pod_template_spec, is merged on top with the same rules as pods.
"""

from operator_fdb.builder.hashing import json_hash
from operator_fdb.builder.merge import merge_layers
from operator_fdb.builder.pods import (
    DEFAULT_RESOURCES,
    DYNAMIC_CONF_DIR,
    IMAGE_ROOT,
    INIT_CONTAINER,
    INPUT_FILES_DIR,
    MAIN_CONTAINER,
    OUTPUT_FILES_DIR,
    TRACE_LOG_DIR,
    sidecar_image,
)
from operator_fdb.cluster import FoundationDBBackup, FoundationDBCluster
from operator_fdb.naming import (
    BACKUP_FOR_LABEL,
    DEPLOYMENT_NAME_LABEL,
    LAST_SPEC_KEY,
    backup_deployment_name,
    config_map_name,
)
from operator_fdb.resources import (
    ConfigMapVolumeSource,
    Container,
    Deployment,
    DeploymentSpec,
    EmptyDirVolumeSource,
    EnvVar,
    KeyToPath,
    LabelSelector,
    ObjectMeta,
    PodSpec,
    PodTemplateSpec,
    ResourceRequirements,
    Volume,
    VolumeMount,
)
from operator_fdb.versions import FdbVersion


def _builtin_template(backup: FoundationDBBackup, cluster: FoundationDBCluster) -> PodTemplateSpec:
    version = backup.spec.version

    init_args = ["--copy-file", "fdb.cluster"]
    if FdbVersion.parse(version).supports_require_not_empty:
        init_args += ["--require-not-empty", "fdb.cluster"]
    init_args.append("--init-mode")

    init = Container(
        name=INIT_CONTAINER,
        image=sidecar_image(cluster, version),
        args=init_args,
        volume_mounts=[
            VolumeMount(name="config-map", mount_path=INPUT_FILES_DIR),
            VolumeMount(name="dynamic-conf", mount_path=OUTPUT_FILES_DIR),
        ],
    )
    agent = Container(
        name=MAIN_CONTAINER,
        image=f"{IMAGE_ROOT}/foundationdb:{version}",
        command=["backup_agent"],
        args=["--log", "--logdir", TRACE_LOG_DIR],
        env=[EnvVar(name="FDB_CLUSTER_FILE", value=f"{DYNAMIC_CONF_DIR}/fdb.cluster")],
        volume_mounts=[
            VolumeMount(name="logs", mount_path=TRACE_LOG_DIR),
            VolumeMount(name="dynamic-conf", mount_path=DYNAMIC_CONF_DIR),
        ],
    )
    volumes = [
        Volume(name="logs", empty_dir=EmptyDirVolumeSource()),
        Volume(name="dynamic-conf", empty_dir=EmptyDirVolumeSource()),
        Volume(
            name="config-map",
            config_map=ConfigMapVolumeSource(
                name=config_map_name(cluster),
                items=[KeyToPath(key="cluster-file", path="fdb.cluster")],
            ),
        ),
    ]
    return PodTemplateSpec(
        metadata=ObjectMeta(),
        spec=PodSpec(init_containers=[init], containers=[agent], volumes=volumes),
    )


def build_backup_deployment(
    backup: FoundationDBBackup, cluster: FoundationDBCluster
) -> Deployment | None:
    """
    Build the backup agent deployment.

    Args:
        backup: Backup resource describing the agents
        cluster: Cluster the agents back up, looked up by the caller

    Returns:
        None when the agent count is zero, otherwise the desired deployment
        stamped with its spec hash.
    """
    replicas = backup.desired_agent_count()
    if replicas == 0:
        return None

    name = backup_deployment_name(backup.name)
    template = merge_layers(_builtin_template(backup, cluster), [backup.spec.pod_template_spec])

    for container in template.spec.containers or []:
        if container.name == MAIN_CONTAINER and container.resources is None:
            container.resources = ResourceRequirements(
                limits=dict(DEFAULT_RESOURCES),
                requests=dict(DEFAULT_RESOURCES),
            )

    template_meta = template.metadata or ObjectMeta()
    template.metadata = template_meta.model_copy(
        update={"labels": {**(template_meta.labels or {}), DEPLOYMENT_NAME_LABEL: name}}
    )

    spec = DeploymentSpec(
        replicas=replicas,
        selector=LabelSelector(match_labels={DEPLOYMENT_NAME_LABEL: name}),
        template=template,
    )
    return Deployment(
        metadata=ObjectMeta(
            name=name,
            namespace=backup.namespace,
            labels={BACKUP_FOR_LABEL: cluster.metadata.uid or ""},
            annotations={LAST_SPEC_KEY: json_hash(spec)},
            owner_references=[cluster.owner_reference()],
        ),
        spec=spec,
    )
