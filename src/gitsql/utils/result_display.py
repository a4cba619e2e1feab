"""Display utilities for SQL query results.

Renders a QueryResult as a rich table followed by the row count.
"""

from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..storage.history_store import QueryResult

TRAVERSE_TIP = "Tip: use the `traverse <commit id>` command to insert commit history"


def value_to_string(value: Any) -> str:
    """Render one SQLite value as table cell text."""
    if value is None:
        return "NULL"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "Blob"
    if isinstance(value, str):
        # \r\n breaks table layout
        return value.replace("\r\n", "\n")
    return str(value)


def build_table(result: QueryResult, width: Optional[int] = None) -> Table:
    table = Table(box=box.SQUARE, show_lines=True, width=width)
    for column in result.columns:
        table.add_column(Text(column), overflow="fold")
    for row in result.rows:
        # Cell text is data, not rich markup
        table.add_row(*(Text(value_to_string(value)) for value in row))
    return table


def display_query_result(
    console: Console,
    result: QueryResult,
    sql: str,
    width: Optional[int] = None,
    show_tips: bool = True,
) -> None:
    """Print the result table, the row count and, if useful, the traverse tip.

    Args:
        console: Console to print to
        result: Result of the statement
        sql: Statement text, used to decide whether the tip applies
        width: Fixed table width, None to fit the terminal
        show_tips: Whether the traverse tip may be printed
    """
    if result.columns:
        console.print(build_table(result, width=width))

    console.print(f"Rows returned: {result.row_count}", markup=False)

    if show_tips and result.row_count == 0 and "commits" in sql:
        console.print(TRAVERSE_TIP, style="dim", markup=False)
