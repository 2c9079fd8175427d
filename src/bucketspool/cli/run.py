"""
bucketspool run - Spool records to stdout.

Each record is written as one JSON line. The cursor is saved to a state file
after every batch has been written, so a later run resumes after the last
record printed.
"""

import json
import os
import time
from pathlib import Path

import typer

from bucketspool.config.loader import load_config
from bucketspool.config.settings import SpoolConfig
from bucketspool.exceptions import BucketSpoolError
from bucketspool.spool.source import SpoolSource
from bucketspool.spool.types import Batch
from bucketspool.utils.logging import get_logger, setup_logging_from_config

logger = get_logger("bucketspool.cli.run")

STATE_FILE = ".bucketspool-state.json"

app = typer.Typer(name="run", help="Spool records from the configured bucket folder", invoke_without_command=True)


def read_state(path: Path) -> str | None:
    """Cursor saved by a previous run, or None."""
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise BucketSpoolError(f"Cannot read state file {path}: {e}") from e
    return data.get("cursor") if isinstance(data, dict) else None


def write_state(path: Path, cursor: str | None) -> None:
    """Atomically replace the state file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps({"cursor": cursor}))
    os.replace(tmp_path, path)


def emit(batch: Batch) -> None:
    for record in batch.records:
        line = {
            "id": record.record_id,
            "bucket": record.bucket,
            "key": record.key,
            "offset": record.offset,
            "value": record.value,
        }
        typer.echo(json.dumps(line, default=str))


@app.callback()
def run(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
    state_file: Path | None = typer.Option(
        None, "--state-file", "-s", help=f"Cursor state file (default: <project-dir>/{STATE_FILE})"
    ),
    cursor: str | None = typer.Option(None, "--cursor", help="Start from this cursor instead of the saved one"),
    once: bool = typer.Option(False, "--once", help="Produce a single batch and exit"),
    max_batches: int | None = typer.Option(None, "--max-batches", min=1, help="Stop after this many batches"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Keep polling for new objects when caught up"),
    poll_interval: float = typer.Option(5.0, "--poll-interval", min=0.0, help="Seconds between polls with --follow"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """
    Produce batches until the folder is drained.
    """
    if ctx.invoked_subcommand is not None:
        return

    state_path = state_file or project_dir / STATE_FILE
    try:
        config = load_config(project_dir, env=env)
        if verbose:
            config.data.setdefault("logging", {})["level"] = "DEBUG"
        setup_logging_from_config(config.data, project_dir)
        spool_config = SpoolConfig.from_dict(config.data)
        position = cursor if cursor is not None else read_state(state_path)

        batches = 0
        with SpoolSource(spool_config) as source:
            while True:
                batch = source.produce(position)
                emit(batch)
                for error in batch.errors:
                    logger.warning(f"Skipped '{error.key}' at offset {error.offset}: {error.message}")
                caught_up = not batch.records and not batch.errors and batch.cursor == position
                if batch.cursor != position:
                    write_state(state_path, batch.cursor)
                    position = batch.cursor
                batches += 1

                if once or (max_batches is not None and batches >= max_batches):
                    break
                if caught_up:
                    if not follow:
                        logger.info("No more objects to read")
                        break
                    time.sleep(poll_interval)
    except BucketSpoolError as e:
        logger.error(e.message)
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1) from e
