"""
Platform resource API client.

The reconciliation engine only ever talks to the platform through the
PlatformClient protocol: list/get/create/update/delete on typed resources,
status updates on the cluster object and event recording. KubernetesClient
implements it over the Kubernetes REST API with an injected
httpx.AsyncClient, so tests can swap in an httpx.MockTransport or an
in-memory fake.

Optimistic concurrency: updates carry metadata.resourceVersion, and the API
server answers 409 when the object changed underneath us. That is surfaced
as ConflictingUpdateError so the caller can refetch and reapply.
"""

import logging
from dataclasses import dataclass
from typing import Protocol, TypeVar, runtime_checkable

import httpx

from operator_fdb.cluster import API_VERSION, FoundationDBBackup, FoundationDBCluster
from operator_fdb.errors import ConflictingUpdateError
from operator_fdb.naming import label_selector
from operator_fdb.resources import (
    ConfigMap,
    Deployment,
    Event,
    KubeModel,
    ObjectMeta,
    ObjectReference,
    PersistentVolumeClaim,
    Pod,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=KubeModel)

# (API prefix, plural) per resource model
RESOURCE_ROUTES: dict[type[KubeModel], tuple[str, str]] = {
    Pod: ("/api/v1", "pods"),
    PersistentVolumeClaim: ("/api/v1", "persistentvolumeclaims"),
    ConfigMap: ("/api/v1", "configmaps"),
    Event: ("/api/v1", "events"),
    Deployment: ("/apis/apps/v1", "deployments"),
    FoundationDBCluster: (f"/apis/{API_VERSION}", "foundationdbclusters"),
    FoundationDBBackup: (f"/apis/{API_VERSION}", "foundationdbbackups"),
}


@runtime_checkable
class PlatformClient(Protocol):
    """Typed resource operations the reconciler needs from the platform."""

    async def list_objects(
        self, model: type[R], namespace: str, labels: dict[str, str] | None = None
    ) -> list[R]:
        """List objects of a kind, filtered by an exact-match label set."""
        ...

    async def get_object(self, model: type[R], namespace: str, name: str) -> R | None:
        """Fetch one object, or None when it does not exist."""
        ...

    async def create_object(self, obj: R) -> R:
        ...

    async def update_object(self, obj: R) -> R:
        """Replace an object; raises ConflictingUpdateError on a stale version."""
        ...

    async def update_status(self, obj: R) -> R:
        """Replace the status subresource of an object."""
        ...

    async def delete_object(self, model: type[R], namespace: str, name: str) -> None:
        ...

    async def record_event(
        self, obj: KubeModel, event_type: str, reason: str, message: str
    ) -> None:
        """Record an event against an object."""
        ...


def _route(model: type[KubeModel]) -> tuple[str, str]:
    try:
        return RESOURCE_ROUTES[model]
    except KeyError:
        raise ValueError(f"No API route registered for {model.__name__}") from None


def _path(model: type[KubeModel], namespace: str, name: str | None = None) -> str:
    prefix, plural = _route(model)
    path = f"{prefix}/namespaces/{namespace}/{plural}"
    if name is not None:
        path = f"{path}/{name}"
    return path


@dataclass
class KubernetesClient:
    """
    Kubernetes REST client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to the API
            server and the bearer token in its default headers.

    Example:
        async with httpx.AsyncClient(base_url="https://kubernetes.default.svc") as http:
            client = KubernetesClient(http=http)
            pods = await client.list_objects(Pod, "default", {"fdb-cluster-name": "sample"})
    """

    http: httpx.AsyncClient

    async def list_objects(
        self, model: type[R], namespace: str, labels: dict[str, str] | None = None
    ) -> list[R]:
        params = {"labelSelector": label_selector(labels)} if labels else None
        response = await self.http.get(_path(model, namespace), params=params)
        response.raise_for_status()
        return [model.model_validate(item) for item in response.json().get("items", [])]

    async def get_object(self, model: type[R], namespace: str, name: str) -> R | None:
        response = await self.http.get(_path(model, namespace, name))
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return model.model_validate(response.json())

    async def create_object(self, obj: R) -> R:
        namespace = obj.metadata.namespace or "default"
        response = await self.http.post(_path(type(obj), namespace), json=obj.to_api())
        self._raise_for_conflict(response, obj)
        return type(obj).model_validate(response.json())

    async def update_object(self, obj: R) -> R:
        namespace = obj.metadata.namespace or "default"
        response = await self.http.put(
            _path(type(obj), namespace, obj.metadata.name), json=obj.to_api()
        )
        self._raise_for_conflict(response, obj)
        return type(obj).model_validate(response.json())

    async def update_status(self, obj: R) -> R:
        namespace = obj.metadata.namespace or "default"
        response = await self.http.put(
            f"{_path(type(obj), namespace, obj.metadata.name)}/status", json=obj.to_api()
        )
        self._raise_for_conflict(response, obj)
        return type(obj).model_validate(response.json())

    async def delete_object(self, model: type[R], namespace: str, name: str) -> None:
        response = await self.http.delete(_path(model, namespace, name))
        if response.status_code == 404:
            return
        response.raise_for_status()

    async def record_event(
        self, obj: KubeModel, event_type: str, reason: str, message: str
    ) -> None:
        metadata = obj.metadata
        event = Event(
            metadata=ObjectMeta(
                generate_name=f"{metadata.name}.",
                namespace=metadata.namespace or "default",
            ),
            involved_object=ObjectReference(
                api_version=getattr(obj, "api_version", None),
                kind=getattr(obj, "kind", None),
                name=metadata.name,
                namespace=metadata.namespace,
                uid=metadata.uid,
                resource_version=metadata.resource_version,
            ),
            reason=reason,
            message=message,
            type=event_type,
        )
        try:
            await self.create_object(event)
        except (httpx.HTTPError, ConflictingUpdateError) as e:
            # Events are best effort
            logger.warning("Failed to record event %s on %s: %s", reason, metadata.name, e)

    @staticmethod
    def _raise_for_conflict(response: httpx.Response, obj: KubeModel) -> None:
        if response.status_code == 409:
            raise ConflictingUpdateError(getattr(obj, "kind", type(obj).__name__), obj.metadata.name or "")
        response.raise_for_status()
