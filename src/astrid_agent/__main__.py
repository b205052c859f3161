"""Run the Astrid agent API server.

Usage:
    astrid-agent --repo-path /srv/checkout --port 8000
    python -m astrid_agent -c astrid.yaml
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
import uvicorn

from astrid_agent import __version__
from astrid_agent.api import create_app
from astrid_agent.config import ConfigError, load_config
from astrid_agent.logging import setup_logging

logger = logging.getLogger("astrid_agent.server")


@click.command()
@click.version_option(__version__)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to astrid.yaml (auto-detected in the working directory)",
)
@click.option("--host", default="127.0.0.1", show_default=True, help="Host to bind")
@click.option("--port", type=int, default=8000, show_default=True, help="Port to bind")
@click.option("--db-path", help="SQLite database path (overrides ASTRID_DB_PATH)")
@click.option(
    "--repo-path",
    type=click.Path(exists=True, file_okay=False),
    help="Main repository clone (overrides ASTRID_REPO_PATH)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default: ASTRID_LOG_LEVEL or INFO)",
)
def main(
    config_path: Path | None,
    host: str,
    port: int,
    db_path: str | None,
    repo_path: str | None,
    log_level: str | None,
) -> None:
    """Serve the Astrid agent orchestration API."""
    setup_logging(level=log_level)

    overrides = {}
    if db_path:
        overrides["db_path"] = db_path
    if repo_path:
        overrides["repo_path"] = repo_path
    try:
        config = load_config(config_path, **overrides)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    logger.info("Starting API server on %s:%d", host, port)
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
