"""
Factory functions for the operator's external clients.

Handles construction of the httpx clients and the client wrappers from
OperatorSettings, so CLI commands do not repeat the wiring.

Example:
    settings = OperatorSettings()
    async with create_clients(settings) as clients:
        reconciler = Reconciler(clients.platform, clients.sidecars, clients.admin, settings)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from operator_fdb.clients.admin import CliAdminClientFactory
from operator_fdb.clients.kube_config import create_api_http_client, load_kube_configuration
from operator_fdb.clients.platform import KubernetesClient
from operator_fdb.clients.sidecar import HttpSidecarClientFactory
from operator_fdb.config import OperatorSettings


@dataclass
class OperatorClients:
    """The three capabilities injected into the reconciler."""

    platform: KubernetesClient
    sidecars: HttpSidecarClientFactory
    admin: CliAdminClientFactory


def create_kubernetes_client(settings: OperatorSettings) -> KubernetesClient:
    """
    Create a KubernetesClient for the API server found by load_kube_configuration.

    Note:
        The caller owns the underlying httpx client and must close it.
    """
    configuration = load_kube_configuration(settings)
    return KubernetesClient(http=create_api_http_client(configuration, timeout=10.0))


def create_sidecar_factory(settings: OperatorSettings) -> HttpSidecarClientFactory:
    """Create the sidecar client factory. Close it with aclose()."""
    return HttpSidecarClientFactory(
        http=httpx.AsyncClient(timeout=settings.sidecar_timeout_seconds),
        port=settings.sidecar_port,
        timeout=settings.sidecar_timeout_seconds,
        ca_file=settings.sidecar_ca_file,
        insecure_skip_verify=settings.sidecar_insecure_skip_verify,
    )


@asynccontextmanager
async def create_clients(settings: OperatorSettings) -> AsyncIterator[OperatorClients]:
    """Create every client and close their connection pools on exit."""
    platform = create_kubernetes_client(settings)
    sidecars = create_sidecar_factory(settings)
    try:
        yield OperatorClients(
            platform=platform,
            sidecars=sidecars,
            admin=CliAdminClientFactory(
                cluster_file_dir=settings.cluster_file_dir,
                fdbcli_path=settings.fdbcli_path,
            ),
        )
    finally:
        await sidecars.aclose()
        await platform.http.aclose()
