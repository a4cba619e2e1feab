"""Interactive command loop.

Each input line is either a command (``exit``, ``quit``, ``help``,
``traverse <commit id>``) or a SQL statement run against the session's
store. Failed statements and traversals are reported and the loop
continues.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from rich.console import Console

from .config import Config
from .errors import GitSqlError, ReaderError, ReaderErrorKind, StoreError
from .session import QuerySession
from .utils.exception_logger import log_exception
from .utils.result_display import display_query_result

logger = logging.getLogger(__name__)

USER_ERROR_KINDS = (ReaderErrorKind.NOT_FOUND, ReaderErrorKind.AMBIGUOUS)

HELP_TEXT = """Available commands:
 - `exit` or `quit`: Exit the program.
 - `help`: Display this help message.
 - `traverse <commit id>`: Traverse commit history and insert each commit into the database.
 - Enter SQL at the prompt to see results."""


class CommandKind(Enum):
    EMPTY = "empty"
    EXIT = "exit"
    HELP = "help"
    TRAVERSE = "traverse"
    SQL = "sql"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    text: str
    argument: str = ""


def parse_command(line: str) -> Command:
    """Classify one line of input.

    ``traverse`` takes exactly one argument; any other form of the line is
    passed through as SQL.
    """
    text = line.strip()
    words = text.split()

    if not words:
        return Command(CommandKind.EMPTY, text)
    if words in (["exit"], ["quit"]):
        return Command(CommandKind.EXIT, text)
    if words == ["help"]:
        return Command(CommandKind.HELP, text)
    if len(words) == 2 and words[0] == "traverse":
        return Command(CommandKind.TRAVERSE, text, argument=words[1])
    return Command(CommandKind.SQL, text)


class CommandLoop:
    """Read-eval-print loop over a QuerySession."""

    def __init__(self, session: QuerySession, config: Config, console: Optional[Console] = None):
        self.session = session
        self.config = config
        self.console = console or Console()

    def run_sql(self, sql: str) -> bool:
        """Run and display one statement. Returns False if it failed."""
        try:
            result = self.session.run_query(sql)
        except StoreError as e:
            self.console.print(f"SQL error. {e}", style="red", markup=False)
            return False

        display_query_result(
            self.console,
            result,
            sql,
            width=self.config.display.table_width,
            show_tips=self.config.display.show_tips,
        )
        return True

    def traverse(self, identifier: str) -> bool:
        """Extend the store with history from identifier. Returns False on failure."""
        try:
            walked = self.session.extend(identifier)
        except GitSqlError as e:
            # Unknown and ambiguous ids are not logged
            if not (isinstance(e, ReaderError) and e.kind in USER_ERROR_KINDS):
                log_exception(e, context={"command": "traverse", "identifier": identifier})
            self.console.print(f"traverse error. {e}", style="red", markup=False)
            return False

        self.console.print(f"Traversed {walked} commits from {identifier}", markup=False)
        return True

    def execute(self, command: Command) -> bool:
        """Execute one parsed command.

        Returns:
            False if the loop should stop, True otherwise
        """
        if command.kind is CommandKind.EXIT:
            return False
        if command.kind is CommandKind.HELP:
            self.console.print(HELP_TEXT, markup=False)
        elif command.kind is CommandKind.TRAVERSE:
            self.traverse(command.argument)
        elif command.kind is CommandKind.SQL:
            self.run_sql(command.text)
        return True

    def run_statements(self, statements: Iterable[str]) -> bool:
        """Run statements one after another without prompting.

        Returns:
            True if every statement succeeded
        """
        succeeded = True
        for sql in statements:
            self.console.print(f"{self.config.prompt}{sql}", markup=False)
            succeeded = self.run_sql(sql) and succeeded
        return succeeded

    def run(self) -> None:
        """Show the initial query, then prompt until exit, EOF or Ctrl-C."""
        if self.config.initial_query:
            self.run_statements([self.config.initial_query])

        while True:
            try:
                line = self.console.input(self.config.prompt, markup=False)
            except (EOFError, KeyboardInterrupt):
                self.console.print()
                break

            if not self.execute(parse_command(line)):
                break

        logger.debug("Command loop finished")
