from __future__ import annotations

import json
from typing import Optional

import typer

from .config import EtlConfig, load_config
from .core import Pipeline
from .errors import EtlError
from .logging import get_logger
from .status import output_status


app = typer.Typer(add_completion=False, help="Export the to-do collection as versioned JSON")
log = get_logger("todo_etl.cli")


def _config(path: Optional[str]) -> EtlConfig:
    try:
        return load_config(path)
    except EtlError as e:
        log.error("Configuration error: %s", e)
        raise typer.Exit(code=1)


def _run_pipeline(config_path: Optional[str]) -> None:
    config = _config(config_path)
    logger = get_logger("todo_etl", log_dir=config.log_dir, level=config.log_level)
    try:
        result = Pipeline(config).run()
    except EtlError:
        # The pipeline has already logged the cause.
        logger.info("ETL pipeline exiting with status 1")
        raise typer.Exit(code=1)
    logger.info("ETL pipeline completed successfully")
    typer.echo(json.dumps(result.to_dict()))


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, "--config", help="Optional YAML config"),
):
    """Run the pipeline when no subcommand is given."""
    ctx.obj = config
    if ctx.invoked_subcommand is None:
        _run_pipeline(config)


@app.command()
def run(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, "--config", help="Optional YAML config"),
):
    """Extract, transform and, if the data changed, save a new version."""
    _run_pipeline(config or ctx.obj)


@app.command()
def status(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, "--config", help="Optional YAML config"),
):
    """Show the latest saved version and the backups on disk."""
    cfg = _config(config or ctx.obj)
    try:
        info = output_status(cfg.output_dir)
    except (OSError, ValueError) as e:
        log.error("Cannot read output directory %s: %s", cfg.output_dir, e)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(info, indent=2))


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
