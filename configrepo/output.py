"""
Command output for configrepo.

Commands write one JSON object per line on stdout so results can be piped
into jq or another tool. ``--pretty`` renders the same records as a Rich
table instead. Errors always go to stderr as a single JSON object.
"""

import json
import sys
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console
from rich.table import Table

# Columns shown first when a command does not choose its own.
LEADING_COLUMNS = ('name', 'app', 'version', 'description', 'created_at')
MAX_CELL = 60


def emit(
    items: Iterable[Any],
    pretty: bool = False,
    columns: Optional[List[str]] = None
) -> None:
    """
    Write records to stdout.

    Args:
        items: Domain objects with ``to_dict()``, or plain dicts
        pretty: Render a table instead of JSONL
        columns: Table columns, in order (derived from the first record if None)
    """
    records = [to_record(item) for item in items]
    if pretty:
        _print_table(records, columns)
        return
    for record in records:
        print(json.dumps(record, ensure_ascii=False), flush=True)


def to_record(item: Any) -> Dict[str, Any]:
    if isinstance(item, dict):
        return item
    return item.to_dict()


def _print_table(records: List[Dict[str, Any]], columns: Optional[List[str]]) -> None:
    if not records:
        print("No results found")
        return

    if not columns:
        keys = list(records[0])
        columns = [k for k in LEADING_COLUMNS if k in keys]
        columns += [k for k in keys if k not in columns]

    table = Table(show_header=True, header_style="bold")
    for column in columns:
        table.add_column(column.upper().replace('_', ' '))
    for record in records:
        table.add_row(*(_cell(record.get(column)) for column in columns))

    Console(file=sys.stdout).print(table)


def _cell(value: Any) -> str:
    """Text for one table cell."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'yes' if value else 'no'
    if isinstance(value, dict):
        # Release slugs render as their image; env and formation as their keys.
        if 'id' in value:
            return str(value['id'])
        return ' '.join(sorted(value))
    text = str(value)
    if len(text) > MAX_CELL:
        text = text[:MAX_CELL - 1] + '…'
    return text


def emit_error(
    error: str,
    type: str = "error",
    exit_code: Optional[int] = None
) -> None:
    """Write an error object to stderr."""
    payload: Dict[str, Any] = {'error': error, 'type': type}
    if exit_code is not None:
        payload['exit_code'] = exit_code
    print(json.dumps(payload, ensure_ascii=False), file=sys.stderr, flush=True)
