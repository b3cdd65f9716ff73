"""
Database administration client.

The operator changes database-level configuration (replication mode, storage
engine) through fdbcli. CliAdminClient writes the cluster's connection
string to a cluster file and runs `fdbcli --exec "configure ..."` in an
asyncio subprocess.
"""

import asyncio
import logging
from asyncio.subprocess import PIPE
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from operator_fdb.cluster import DatabaseConfiguration, FoundationDBCluster
from operator_fdb.errors import AdminConfigurationError

logger = logging.getLogger(__name__)


@runtime_checkable
class AdminClient(Protocol):
    async def configure_database(self, config: DatabaseConfiguration, initial: bool) -> None:
        """
        Apply a database configuration.

        Raises:
            AdminConfigurationError: If the database rejects the configuration.
        """
        ...


@runtime_checkable
class AdminClientFactory(Protocol):
    def client_for(self, cluster: FoundationDBCluster) -> AdminClient:
        ...


@dataclass
class CliAdminClient:
    """
    fdbcli-backed admin client for one cluster.

    Attributes:
        cluster_name: Name used in error messages
        cluster_file: Path of the cluster file fdbcli connects with
        connection_string: Contents written to cluster_file before each call
        fdbcli_path: fdbcli binary
        timeout_seconds: Upper bound on one fdbcli invocation
    """

    cluster_name: str
    cluster_file: Path
    connection_string: str
    fdbcli_path: str = "fdbcli"
    timeout_seconds: float = 30.0

    async def configure_database(self, config: DatabaseConfiguration, initial: bool) -> None:
        command = "configure "
        if initial:
            command += "new "
        command += config.configure_args()
        await self._run(command)

    async def _run(self, command: str) -> str:
        self.cluster_file.parent.mkdir(parents=True, exist_ok=True)
        self.cluster_file.write_text(self.connection_string)

        logger.info("Running fdbcli command %r for %s", command, self.cluster_name)
        proc = await asyncio.create_subprocess_exec(
            self.fdbcli_path,
            "-C", str(self.cluster_file),
            "--exec", command,
            "--timeout", str(int(self.timeout_seconds)),
            stdout=PIPE,
            stderr=PIPE,
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout_seconds + 5
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise AdminConfigurationError(
                self.cluster_name, f"fdbcli timed out after {self.timeout_seconds}s"
            ) from None

        stdout = stdout_bytes.decode("utf-8", errors="replace") if stdout_bytes else ""
        stderr = stderr_bytes.decode("utf-8", errors="replace") if stderr_bytes else ""
        if proc.returncode != 0 or "ERROR" in stdout:
            raise AdminConfigurationError(self.cluster_name, (stderr or stdout).strip())
        return stdout


@dataclass
class CliAdminClientFactory:
    """Builds a CliAdminClient per cluster, one cluster file each."""

    cluster_file_dir: Path
    fdbcli_path: str = "fdbcli"

    def client_for(self, cluster: FoundationDBCluster) -> CliAdminClient:
        return CliAdminClient(
            cluster_name=cluster.name,
            cluster_file=self.cluster_file_dir / f"{cluster.namespace}-{cluster.name}.cluster",
            connection_string=cluster.spec.connection_string,
            fdbcli_path=self.fdbcli_path,
        )
