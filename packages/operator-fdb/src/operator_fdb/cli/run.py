"""Reconcile daemon CLI command.

This module provides the CLI command for running the operator:
- run: Reconcile every cluster in a namespace, periodically or once

Settings come from FDB_OPERATOR_* environment variables; the options below
override the most common ones.
"""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from operator_fdb.cli.logging import configure_logging
from operator_fdb.clients.factory import create_clients
from operator_fdb.config import OperatorSettings
from operator_fdb.loop import ReconcileLoop
from operator_fdb.reconcile.backup import BackupReconciler
from operator_fdb.reconcile.pipeline import Reconciler
from operator_fdb.reconcile.types import ReconcileResult

run_app = typer.Typer(help="Run the reconciliation loop")
console = Console()


@run_app.callback(invoke_without_command=True)
def run(
    namespace: str = typer.Option(
        None, "--namespace", "-n", envvar="FDB_OPERATOR_NAMESPACE", help="Namespace to watch"
    ),
    cluster: str = typer.Option(
        None, "--cluster", "-c", help="Reconcile only this cluster (skips backups)"
    ),
    once: bool = typer.Option(False, "--once", help="Run a single pass and print the results"),
    interval: float = typer.Option(
        None,
        "--interval",
        "-i",
        envvar="FDB_OPERATOR_RESYNC_INTERVAL_SECONDS",
        help="Resync interval in seconds",
    ),
    api_url: str = typer.Option(
        None, "--api-url", envvar="FDB_OPERATOR_API_URL", help="Kubernetes API server URL"
    ),
    kubeconfig: str = typer.Option(
        None, "--kubeconfig", envvar="FDB_OPERATOR_KUBECONFIG", help="Kubeconfig file to use"
    ),
    context: str = typer.Option(
        None, "--context", envvar="FDB_OPERATOR_KUBE_CONTEXT", help="Kubeconfig context"
    ),
    log_level: str = typer.Option(
        None, "--log-level", envvar="FDB_OPERATOR_LOG_LEVEL", help="Log level (DEBUG, INFO, ...)"
    ),
) -> None:
    """
    Run the operator.

    Reconciles every FoundationDBCluster and FoundationDBBackup in the
    namespace, then sleeps until the next resync. Runs until interrupted
    with Ctrl+C unless --once is given.

    Environment variables:
        FDB_OPERATOR_API_URL: Kubernetes API server URL (skips discovery)
        FDB_OPERATOR_API_TOKEN: Bearer token (defaults to the discovered credentials)
        FDB_OPERATOR_KUBECONFIG: Kubeconfig file (defaults to in-cluster, then ~/.kube/config)
        FDB_OPERATOR_NAMESPACE: Namespace to watch
        FDB_OPERATOR_RESYNC_INTERVAL_SECONDS: Resync interval
        FDB_OPERATOR_FDBCLI_PATH: Path to the fdbcli binary
    """
    overrides = {
        "namespace": namespace,
        "resync_interval_seconds": interval,
        "api_url": api_url,
        "kubeconfig": kubeconfig,
        "kube_context": context,
        "log_level": log_level,
    }
    settings = OperatorSettings(**{k: v for k, v in overrides.items() if v is not None})
    configure_logging(settings.log_level)

    if once:
        results = asyncio.run(_run_once(settings, cluster))
        _print_results(results)
        if any(result.error for result in results):
            raise typer.Exit(1)
        return

    console.print(f"[bold]Starting operator[/bold] (namespace: {settings.namespace})")
    console.print("Press Ctrl+C to stop\n")
    asyncio.run(_run_forever(settings, cluster))


def _build_loop(clients, settings: OperatorSettings, cluster: str | None) -> ReconcileLoop:
    reconciler = Reconciler(clients.platform, clients.sidecars, clients.admin, settings)
    return ReconcileLoop(
        reconciler,
        clients.platform,
        settings,
        cluster_name=cluster,
        backup_reconciler=BackupReconciler(clients.platform, settings),
    )


async def _run_once(settings: OperatorSettings, cluster: str | None) -> list[ReconcileResult]:
    async with create_clients(settings) as clients:
        return await _build_loop(clients, settings, cluster).run_once()


async def _run_forever(settings: OperatorSettings, cluster: str | None) -> None:
    async with create_clients(settings) as clients:
        await _build_loop(clients, settings, cluster).run()


def _print_results(results: list[ReconcileResult]) -> None:
    if not results:
        console.print("[dim]Nothing to reconcile[/dim]")
        return

    table = Table(title="Reconcile results")
    table.add_column("Namespace", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Step")
    table.add_column("Requeue", justify="right")
    table.add_column("Error", max_width=60)

    for result in results:
        if result.error:
            status = "[red]failed[/red]"
        elif result.completed:
            status = "[green]done[/green]"
        else:
            status = "[yellow]requeue[/yellow]"
        requeue = f"{result.requeue_after:.0f}s" if result.requeue_after is not None else "-"
        table.add_row(
            result.namespace,
            result.name,
            status,
            result.step or "-",
            requeue,
            result.error or "",
        )

    console.print(table)
