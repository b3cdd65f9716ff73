"""Render desired resources without touching a cluster.

Reads a FoundationDBCluster (or FoundationDBBackup) manifest from a YAML
file and prints the objects the operator would create for it.
"""

from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

from operator_fdb.builder.backup import build_backup_deployment
from operator_fdb.builder.claims import build_volume_claim
from operator_fdb.builder.config_map import build_config_map
from operator_fdb.builder.pods import build_pod, pod_spec_hash
from operator_fdb.cluster import FoundationDBBackup, FoundationDBCluster
from operator_fdb.resources import KubeModel

render_app = typer.Typer(help="Render the resources built for a cluster manifest")
console = Console()


def _load(path: Path, model: type[KubeModel]):
    if not path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    with path.open() as f:
        return model.model_validate(yaml.safe_load(f))


def _print(obj: KubeModel | None) -> None:
    if obj is None:
        console.print("[dim]Nothing to create[/dim]")
        return
    text = yaml.safe_dump(obj.to_api(), sort_keys=False)
    console.print(Syntax(text, "yaml"))


@render_app.command("pod")
def render_pod(
    cluster_file: Path = typer.Argument(..., help="FoundationDBCluster manifest"),
    process_class: str = typer.Option("storage", "--class", help="Process class"),
    instance: int = typer.Option(1, "--id", help="Instance number"),
    show_hash: bool = typer.Option(False, "--hash", help="Print only the spec hash"),
) -> None:
    """Render the pod for one instance."""
    cluster = _load(cluster_file, FoundationDBCluster)
    if show_hash:
        typer.echo(pod_spec_hash(cluster, process_class, instance))
        return
    _print(build_pod(cluster, process_class, instance))


@render_app.command("claim")
def render_claim(
    cluster_file: Path = typer.Argument(..., help="FoundationDBCluster manifest"),
    process_class: str = typer.Option("storage", "--class", help="Process class"),
    instance: int = typer.Option(1, "--id", help="Instance number"),
) -> None:
    """Render the volume claim for one instance (if it gets one)."""
    cluster = _load(cluster_file, FoundationDBCluster)
    _print(build_volume_claim(cluster, process_class, instance))


@render_app.command("config-map")
def render_config_map(
    cluster_file: Path = typer.Argument(..., help="FoundationDBCluster manifest"),
) -> None:
    """Render the cluster's config map."""
    cluster = _load(cluster_file, FoundationDBCluster)
    _print(build_config_map(cluster))


@render_app.command("backup")
def render_backup(
    backup_file: Path = typer.Option(..., "--backup-file", help="FoundationDBBackup manifest"),
    cluster_file: Path = typer.Option(..., "--cluster-file", help="FoundationDBCluster manifest"),
) -> None:
    """Render the backup agent deployment."""
    backup = _load(backup_file, FoundationDBBackup)
    cluster = _load(cluster_file, FoundationDBCluster)
    _print(build_backup_deployment(backup, cluster))
