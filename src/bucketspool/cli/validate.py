"""
bucketspool validate - Check a spool configuration.

Reports every issue at once; exits non-zero when any of them is an error.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bucketspool.config.settings import SpoolConfig
from bucketspool.exceptions import BucketSpoolError
from bucketspool.spool.source import SpoolSource
from bucketspool.spool.validation import Severity, has_errors

app = typer.Typer(name="validate", help="Validate a spool configuration", invoke_without_command=True)

console = Console()


@app.callback()
def validate(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
    check_buckets: bool = typer.Option(
        False, "--check-buckets", help="Also check that the source and archive buckets exist"
    ),
) -> None:
    """
    Validate source and archive locations.
    """
    if ctx.invoked_subcommand is not None:
        return

    try:
        spool_config = SpoolConfig.load(project_dir, env=env)
        source = SpoolSource(spool_config)
        if check_buckets:
            with source.store:
                issues = source.validate(check_buckets=True)
        else:
            issues = source.validate()
    except BucketSpoolError as e:
        console.print(f"[red]Error:[/red] {escape(e.message)}")
        raise typer.Exit(1) from e

    location = spool_config.source
    console.print(f"\n[bold]Source:[/bold] {escape(location.uri())} (pattern '{escape(location.pattern)}')")
    console.print(f"[bold]On success:[/bold] {spool_config.post_processing}")
    console.print(f"[bold]On error:[/bold] {spool_config.error_handling.action}\n")

    if not issues:
        console.print("[green]Configuration is valid[/green]")
        return

    table = Table(title=f"Issues ({len(issues)})", show_header=True)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Message")
    for issue in issues:
        style = "red" if issue.severity is Severity.ERROR else "yellow"
        table.add_row(f"[{style}]{issue.severity.value}[/{style}]", issue.field, escape(issue.message))
    console.print(table)

    if has_errors(issues):
        raise typer.Exit(1)
