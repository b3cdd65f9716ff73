"""
Shared fakes and fixtures for operator-fdb tests.

FakePlatform is an in-memory PlatformClient: objects are stored per
(kind, namespace, name), resource versions are bumped on every write and a
stale write raises ConflictingUpdateError like the API server's 409.
"""

import itertools
from typing import Any

import pytest

from operator_fdb.cluster import (
    DatabaseConfiguration,
    FoundationDBCluster,
    FoundationDBClusterFaultDomain,
    FoundationDBClusterSpec,
)
from operator_fdb.config import OperatorSettings
from operator_fdb.errors import AddressNotAssignedError, ConflictingUpdateError
from operator_fdb.reconcile.types import ReconcileContext
from operator_fdb.resources import KubeModel, ObjectMeta, Pod, PodStatus


class FakePlatform:
    """In-memory platform implementing PlatformClient."""

    def __init__(self, assign_ips: bool = False):
        self.objects: dict[tuple[str, str, str], KubeModel] = {}
        self.events: list[tuple[str, str, str, str]] = []
        self.created: list[KubeModel] = []
        self.deleted: list[tuple[str, str, str]] = []
        self.conflicts_remaining = 0
        self.assign_ips = assign_ips
        self._versions = itertools.count(1)
        self._ips = itertools.count(1)

    @staticmethod
    def _key(kind: str, namespace: str | None, name: str | None) -> tuple[str, str, str]:
        return (kind, namespace or "default", name or "")

    def add(self, obj: KubeModel) -> KubeModel:
        """Seed an object directly, bypassing create semantics."""
        stored = obj.model_copy(deep=True)
        stored.metadata.resource_version = str(next(self._versions))
        self.objects[self._key(type(obj).__name__, obj.metadata.namespace, obj.metadata.name)] = stored
        return stored.model_copy(deep=True)

    def find(self, model: type, namespace: str, name: str) -> Any:
        stored = self.objects.get(self._key(model.__name__, namespace, name))
        return stored.model_copy(deep=True) if stored is not None else None

    def all(self, model: type) -> list[Any]:
        return [obj for (kind, _, _), obj in sorted(self.objects.items()) if kind == model.__name__]

    async def list_objects(self, model, namespace, labels=None):
        results = []
        for (kind, ns, _), obj in sorted(self.objects.items()):
            if kind != model.__name__ or ns != namespace:
                continue
            obj_labels = obj.metadata.labels or {}
            if all(obj_labels.get(key) == value for key, value in (labels or {}).items()):
                results.append(obj.model_copy(deep=True))
        return results

    async def get_object(self, model, namespace, name):
        return self.find(model, namespace, name)

    async def create_object(self, obj):
        stored = obj.model_copy(deep=True)
        if not stored.metadata.name and stored.metadata.generate_name:
            stored.metadata.name = f"{stored.metadata.generate_name}{len(self.created)}"
        key = self._key(type(obj).__name__, stored.metadata.namespace, stored.metadata.name)
        if key in self.objects:
            raise ConflictingUpdateError(type(obj).__name__, stored.metadata.name)
        stored.metadata.resource_version = str(next(self._versions))
        if isinstance(stored, Pod) and self.assign_ips:
            stored.status = PodStatus(pod_ip=f"10.0.0.{next(self._ips)}")
        self.objects[key] = stored
        self.created.append(stored.model_copy(deep=True))
        return stored.model_copy(deep=True)

    async def update_object(self, obj):
        return self._write(obj, status_only=False)

    async def update_status(self, obj):
        return self._write(obj, status_only=True)

    def _write(self, obj, status_only: bool):
        key = self._key(type(obj).__name__, obj.metadata.namespace, obj.metadata.name)
        stored = self.objects.get(key)
        if stored is None:
            raise ConflictingUpdateError(type(obj).__name__, obj.metadata.name)
        if self.conflicts_remaining > 0 or stored.metadata.resource_version != obj.metadata.resource_version:
            self.conflicts_remaining = max(self.conflicts_remaining - 1, 0)
            raise ConflictingUpdateError(type(obj).__name__, obj.metadata.name)

        if status_only:
            updated = stored.model_copy(deep=True, update={"status": obj.status.model_copy(deep=True)})
        else:
            updated = obj.model_copy(deep=True)
            if hasattr(stored, "status"):
                updated.status = stored.status.model_copy(deep=True) if stored.status else None
        updated.metadata.resource_version = str(next(self._versions))
        self.objects[key] = updated
        return updated.model_copy(deep=True)

    async def delete_object(self, model, namespace, name):
        key = self._key(model.__name__, namespace, name)
        if self.objects.pop(key, None) is not None:
            self.deleted.append(key)

    async def record_event(self, obj, event_type, reason, message):
        self.events.append((obj.metadata.name, event_type, reason, message))

    def event_reasons(self) -> list[str]:
        return [reason for _, _, reason, _ in self.events]


class FakeSidecar:
    """Sidecar client that records pushes instead of calling a pod."""

    def __init__(self, factory: "FakeSidecarFactory", pod: Pod):
        self.factory = factory
        self.pod_name = pod.metadata.name
        self.pod_ip = pod.status.pod_ip if pod.status else None

    async def get_address(self) -> str:
        self.factory.address_calls.append(self.pod_name)
        if not self.pod_ip:
            raise AddressNotAssignedError(self.pod_name)
        return self.pod_ip

    async def copy_files(self, files: dict[str, str]) -> None:
        if self.pod_name in self.factory.failing:
            raise RuntimeError(f"sidecar on {self.pod_name} unavailable")
        self.factory.copied[self.pod_name] = dict(files)

    async def generate_monitor_conf(self, content: str) -> None:
        self.factory.monitor_confs[self.pod_name] = content


class FakeSidecarFactory:
    def __init__(self):
        self.address_calls: list[str] = []
        self.copied: dict[str, dict[str, str]] = {}
        self.monitor_confs: dict[str, str] = {}
        self.failing: set[str] = set()

    def client_for(self, cluster, pod) -> FakeSidecar:
        return FakeSidecar(self, pod)


class FakeAdmin:
    def __init__(self, factory: "FakeAdminFactory", cluster: FoundationDBCluster):
        self.factory = factory
        self.cluster = cluster

    async def configure_database(self, config: DatabaseConfiguration, initial: bool) -> None:
        if self.factory.error is not None:
            raise self.factory.error
        self.factory.calls.append((self.cluster.name, config.configure_args(), initial))


class FakeAdminFactory:
    def __init__(self, error: Exception | None = None):
        self.calls: list[tuple[str, str, bool]] = []
        self.error = error

    def client_for(self, cluster) -> FakeAdmin:
        return FakeAdmin(self, cluster)


def make_cluster(**spec: Any) -> FoundationDBCluster:
    """Build a cluster named my-cluster in my-ns, overriding spec fields."""
    spec.setdefault("version", "6.2.20")
    return FoundationDBCluster(
        metadata=ObjectMeta(name="my-cluster", namespace="my-ns", uid="cluster-uid-1"),
        spec=FoundationDBClusterSpec(**spec),
    )


def make_pod(cluster: FoundationDBCluster, process_class: str, n: int, ip: str | None = None) -> Pod:
    """Build the desired pod for an instance, optionally with an IP."""
    from operator_fdb.builder.pods import build_pod

    pod = build_pod(cluster, process_class, n)
    if ip is not None:
        pod.status = PodStatus(pod_ip=ip)
    return pod


@pytest.fixture
def cluster():
    """A cluster with no fault domain, so pods carry no anti-affinity."""
    return make_cluster(fault_domain=FoundationDBClusterFaultDomain(key="foundationdb.org/none"))


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def sidecars():
    return FakeSidecarFactory()


@pytest.fixture
def admin():
    return FakeAdminFactory()


@pytest.fixture
def settings():
    """Settings with short waits so address polling does not slow tests."""
    return OperatorSettings(address_poll_seconds=0.01, address_wait_attempts=2, api_token="test")


@pytest.fixture
def ctx(cluster, platform, sidecars, admin, settings):
    """Reconcile context whose cluster is stored in the fake platform."""
    stored = platform.add(cluster)
    return ReconcileContext(
        cluster=stored, platform=platform, sidecars=sidecars, admin=admin, settings=settings
    )
