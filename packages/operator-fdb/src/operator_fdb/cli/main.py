"""operator-fdb CLI - reconciliation engine for FoundationDB on Kubernetes."""

import typer

from operator_fdb.cli.render import render_app
from operator_fdb.cli.run import run_app

app = typer.Typer(
    name="operator-fdb",
    help="Reconcile FoundationDB clusters running on Kubernetes",
    no_args_is_help=True,
)

# Add command groups
app.add_typer(run_app, name="run")
app.add_typer(render_app, name="render")


@app.command("version")
def version() -> None:
    """Print the operator version."""
    from operator_fdb import __version__

    typer.echo(__version__)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
