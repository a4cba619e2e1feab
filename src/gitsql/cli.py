"""Command line interface for gitsql."""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console

from . import __version__
from .config import Config, ConfigManager
from .errors import GitSqlError, ReaderError
from .repl import CommandLoop
from .session import QuerySession
from .utils.exception_logger import ExceptionLogger, log_exception

logger = logging.getLogger(__name__)
console = Console()


def _load_config(
    config_file: Optional[str],
    path: Optional[str],
    starting_point: Optional[str],
    width: Optional[int],
) -> Config:
    """Load the config file and apply command line overrides."""
    if config_file:
        config_manager = ConfigManager(Path(config_file))
    else:
        config_manager = ConfigManager.create_with_backtrack(Path(path) if path else None)

    config = config_manager.load()

    updates = {}
    if path:
        updates["repository_path"] = Path(path)
    if starting_point:
        updates["starting_point"] = starting_point
    if updates:
        config = config.model_copy(update=updates)
    if width is not None:
        config.display.table_width = width
    return config


def _describe_error(error: GitSqlError) -> str:
    label = "Repository error" if isinstance(error, ReaderError) else "Store error"
    return f"{label}: {error}"


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--path",
    "-p",
    type=click.Path(file_okay=False),
    help="Repository root to load (default: current directory)",
)
@click.option("--config", "-c", "config_file", type=click.Path(exists=True, dir_okay=False), help="Config file path")
@click.option(
    "--starting-point",
    "-s",
    help="Revision the initial history walk starts from (default: HEAD)",
)
@click.option(
    "--execute",
    "-e",
    "statements",
    multiple=True,
    help="Run this SQL statement and exit instead of prompting (repeatable)",
)
@click.option(
    "--width",
    type=click.IntRange(min=20),
    help="Fixed table width in columns (default: terminal width)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="gitsql")
def cli(
    path: Optional[str],
    config_file: Optional[str],
    starting_point: Optional[str],
    statements: Tuple[str, ...],
    width: Optional[int],
    verbose: bool,
):
    """Query the history of a git repository with SQL.

    \b
    Loads commits reachable from HEAD, all tags and all branches into an
    in-memory SQLite database:
      commits(id, author, date, message)
      tags(id, name, target_id, target_type, tagger, date, message)
      branches(name, type, head_commit_id, head_commit_date)

    \b
    At the prompt, enter SQL or one of:
      traverse <commit id>   # add history reachable from another commit
      help                   # list commands
      exit / quit            # leave

    \b
    EXAMPLES:
      gitsql
      gitsql --path ~/src/project
      gitsql -e "SELECT author, COUNT(*) FROM commits GROUP BY author"
    """
    try:
        config = _load_config(config_file, path, starting_point, width)
    except ValueError as e:
        console.print(f"❌ {e}", style="red", markup=False)
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO if verbose else getattr(logging, config.logging.level),
        format="%(levelname)s:%(name)s:%(message)s",
    )
    ExceptionLogger.initialize(config.logging.error_log_dir)

    if verbose:
        console.print(f"📁 Repository: {config.repository_path}", style="dim", markup=False)

    try:
        session = QuerySession.initialize(config.repository_path, config.starting_point)
    except GitSqlError as e:
        log_exception(e, context={"repository_path": str(config.repository_path)})
        console.print(f"❌ {_describe_error(e)}", style="red", markup=False)
        sys.exit(1)

    with session:
        loop = CommandLoop(session, config, console=console)
        if statements:
            if not loop.run_statements(statements):
                sys.exit(1)
            return
        loop.run()


def main():
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n❌ Interrupted by user", style="red")
        sys.exit(1)
    except Exception as e:
        log_exception(e)
        console.print(f"❌ Unexpected error: {str(e)}", style="red", markup=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
