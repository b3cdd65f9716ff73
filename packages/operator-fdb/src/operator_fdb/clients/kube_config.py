"""
Kubernetes API server connection settings.

The server address, credentials and CA bundle come from the kubernetes
client library's config loaders:
- Inside a pod (KUBERNETES_SERVICE_HOST set): the service account token
  and its ca.crt (load_incluster_config)
- Otherwise: a kubeconfig file (load_kube_config), honoring KUBECONFIG

An explicit FDB_OPERATOR_API_URL skips discovery and uses
FDB_OPERATOR_API_TOKEN and FDB_OPERATOR_CA_FILE as given.

Only configuration loading is taken from the library; requests go through
httpx like every other client in this package.
"""

import logging
import os
import ssl
from collections.abc import Generator

import httpx
from kubernetes import client, config

from operator_fdb.config import OperatorSettings

logger = logging.getLogger(__name__)


def running_in_cluster() -> bool:
    return os.environ.get("KUBERNETES_SERVICE_HOST") is not None


def load_kube_configuration(settings: OperatorSettings) -> client.Configuration:
    """
    Resolve the API server connection for the given settings.

    Raises:
        kubernetes.config.ConfigException: No usable configuration was found
    """
    configuration = client.Configuration()

    if settings.api_url:
        configuration.host = settings.api_url
        if settings.ca_file:
            configuration.ssl_ca_cert = str(settings.ca_file)
        logger.info("Kubernetes config: explicit API URL %s", settings.api_url)
    else:
        _discover(configuration, settings)

    if settings.api_token:
        configuration.api_key = {"authorization": f"Bearer {settings.api_token}"}
        configuration.refresh_api_key_hook = None
    if not settings.verify_tls:
        configuration.verify_ssl = False
    return configuration


def _discover(configuration: client.Configuration, settings: OperatorSettings) -> None:
    if settings.kubeconfig is None and running_in_cluster():
        try:
            config.load_incluster_config(client_configuration=configuration)
            logger.info("Kubernetes config: in-cluster service account")
            return
        except config.ConfigException as e:
            logger.warning("In-cluster config failed: %s, falling back to kubeconfig", e)

    config.load_kube_config(
        config_file=str(settings.kubeconfig) if settings.kubeconfig else None,
        context=settings.kube_context,
        client_configuration=configuration,
    )
    logger.info("Kubernetes config: kubeconfig (context: %s)", settings.kube_context or "current")


class ConfigurationAuth(httpx.Auth):
    """
    Bearer auth read from a kubernetes Configuration on every request.

    The in-cluster loader installs a refresh hook, so rotated service
    account tokens are picked up without restarting the operator.
    """

    def __init__(self, configuration: client.Configuration) -> None:
        self.configuration = configuration

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        value = self.configuration.get_api_key_with_prefix("authorization")
        if value:
            request.headers["Authorization"] = value
        yield request


def ssl_context(configuration: client.Configuration) -> ssl.SSLContext | bool:
    """Build the httpx verify argument from the configuration's TLS settings."""
    if configuration.verify_ssl:
        context = ssl.create_default_context(cafile=configuration.ssl_ca_cert)
    elif configuration.cert_file:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    else:
        return False

    if configuration.cert_file:
        context.load_cert_chain(configuration.cert_file, configuration.key_file)
    return context


def create_api_http_client(configuration: client.Configuration, timeout: float) -> httpx.AsyncClient:
    """httpx client bound to the configured API server. Caller closes it."""
    return httpx.AsyncClient(
        base_url=configuration.host,
        auth=ConfigurationAuth(configuration),
        verify=ssl_context(configuration),
        timeout=timeout,
    )
