"""
Main CLI entry point.
"""

import typer

from bucketspool import __version__
from bucketspool.cli import run, validate


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"bucketspool version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="bucketspool",
    help="bucketspool - resumable record spooling from object-store buckets",
    add_completion=False,
)

app.add_typer(validate.app, name="validate")
app.add_typer(run.app, name="run")


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    bucketspool - resumable record spooling from object-store buckets.

    Run 'bucketspool <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
