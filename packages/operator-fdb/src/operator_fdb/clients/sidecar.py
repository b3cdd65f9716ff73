"""
Sidecar client for pushing dynamic configuration to instances.

Every FoundationDB pod runs a sidecar container with a small HTTP server on
port 8080. The operator uses it to learn the instance's address, to copy
files (the cluster file) into the dynamic-conf volume and to regenerate
fdbmonitor.conf.

Clients are built per pod by a SidecarClientFactory. A pod without an IP
yields a client whose every call raises AddressNotAssignedError; callers
refetch the pod and retry.
"""

import logging
import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx

from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.errors import AddressNotAssignedError
from operator_fdb.resources import Pod

logger = logging.getLogger(__name__)


@runtime_checkable
class SidecarClient(Protocol):
    """Capabilities of one instance's sidecar."""

    async def get_address(self) -> str:
        """Return the instance's IP; raises AddressNotAssignedError until assigned."""
        ...

    async def copy_files(self, files: dict[str, str]) -> None:
        """Write files into the instance's dynamic-conf volume."""
        ...

    async def generate_monitor_conf(self, content: str) -> None:
        """Replace the instance's fdbmonitor.conf."""
        ...


@runtime_checkable
class SidecarClientFactory(Protocol):
    def client_for(self, cluster: FoundationDBCluster, pod: Pod) -> SidecarClient:
        ...


@dataclass
class HttpSidecarClient:
    """
    Sidecar client for one pod.

    Attributes:
        http: Shared httpx.AsyncClient (no base_url; requests use absolute URLs)
        pod_name: Name of the pod, for error messages
        pod_ip: Address assigned to the pod, None until scheduled
        port: Sidecar HTTP port
        scheme: "https" when the sidecar serves TLS
    """

    http: httpx.AsyncClient
    pod_name: str
    pod_ip: str | None
    port: int = 8080
    scheme: str = "http"

    def _url(self, path: str) -> str:
        if not self.pod_ip:
            raise AddressNotAssignedError(self.pod_name)
        return f"{self.scheme}://{self.pod_ip}:{self.port}{path}"

    async def get_address(self) -> str:
        if not self.pod_ip:
            raise AddressNotAssignedError(self.pod_name)
        return self.pod_ip

    async def copy_files(self, files: dict[str, str]) -> None:
        response = await self.http.post(self._url("/copy_files"), json={"files": files})
        response.raise_for_status()

    async def generate_monitor_conf(self, content: str) -> None:
        response = await self.http.post(
            self._url("/copy_monitor_conf"), json={"monitor_conf": content}
        )
        response.raise_for_status()


def sidecar_tls_context(
    trusted_cas: list[str] | None,
    ca_file: Path | None = None,
) -> ssl.SSLContext:
    """
    Verification context for sidecars serving TLS.

    The chain is verified against the cluster's trusted CAs and ca_file, or
    the system store when neither is given. Sidecars are addressed by pod
    IP, so host names are not checked.
    """
    cadata = "\n".join(trusted_cas) if trusted_cas else None
    if cadata is None and ca_file is None:
        context = ssl.create_default_context()
    else:
        context = ssl.create_default_context(cafile=str(ca_file) if ca_file else None, cadata=cadata)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_REQUIRED
    return context


@dataclass
class HttpSidecarClientFactory:
    """
    Builds HttpSidecarClient instances.

    Plain HTTP sidecars share one connection pool. TLS sidecars get one pool
    per distinct trusted-CA set, created on first use and closed by aclose().

    Attributes:
        http: Client for plain HTTP sidecars
        port: Sidecar HTTP port
        timeout: Request timeout for TLS pools
        ca_file: Extra CA bundle trusted for every TLS sidecar
        insecure_skip_verify: Do not verify sidecar certificates
    """

    http: httpx.AsyncClient
    port: int = 8080
    timeout: float = 10.0
    ca_file: Path | None = None
    insecure_skip_verify: bool = False
    _tls_clients: dict[tuple[str, ...], httpx.AsyncClient] = field(default_factory=dict, repr=False)

    def client_for(self, cluster: FoundationDBCluster, pod: Pod) -> HttpSidecarClient:
        tls = cluster.sidecar_tls_enabled
        return HttpSidecarClient(
            http=self._tls_client(cluster) if tls else self.http,
            pod_name=pod.metadata.name or "",
            pod_ip=pod.status.pod_ip if pod.status else None,
            port=self.port,
            scheme="https" if tls else "http",
        )

    def _tls_client(self, cluster: FoundationDBCluster) -> httpx.AsyncClient:
        key = tuple(cluster.spec.trusted_cas or ())
        if key not in self._tls_clients:
            if self.insecure_skip_verify:
                logger.warning("Sidecar certificate verification is disabled")
                verify: ssl.SSLContext | bool = False
            else:
                verify = sidecar_tls_context(list(key), self.ca_file)
            self._tls_clients[key] = httpx.AsyncClient(timeout=self.timeout, verify=verify)
        return self._tls_clients[key]

    async def aclose(self) -> None:
        for http in self._tls_clients.values():
            await http.aclose()
        self._tls_clients.clear()
        await self.http.aclose()
