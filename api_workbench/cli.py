"""api-workbench command line entry point."""

from pathlib import Path

import click

from . import __version__
from .config import load_settings
from .exceptions import ConfigError
from .main import run


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding requests.json, database.json and environments.json.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level for the log file (default: INFO).",
)
@click.version_option(__version__, prog_name="api-workbench")
def main(config_dir: Path | None, log_level: str | None) -> None:
    """Interactive terminal workbench for HTTP requests and SQL queries."""
    try:
        settings = load_settings(
            config_dir=config_dir,
            log_level=log_level.upper() if log_level else None,
        )
    except ConfigError as e:
        raise click.ClickException(e.detail)
    run(settings)


if __name__ == "__main__":
    main()
