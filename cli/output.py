#!/usr/bin/env python3
"""
Output Formatting Module for NFT Freeze CLI

Renders command results as tables, JSON or YAML. Results are plain dicts and
lists, possibly holding ledger models, events or receipts; everything is
reduced to JSON-compatible data before rendering.
"""

import json
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from pydantic import BaseModel
from tabulate import tabulate

from chain.address import is_address
from chain.events import Event, TransactionReceipt

# Lists longer than this are summarized in table cells
MAX_INLINE_ITEMS = 10

ANSI_STYLES = {
    'header': '\033[1;34m',
    'key': '\033[1;36m',
    'address': '\033[32m',
    'number': '\033[33m',
    'bool': '\033[35m',
    'null': '\033[90m',
}
ANSI_RESET = '\033[0m'


def to_plain(value: Any) -> Any:
    """Reduce a result to dicts, lists, strings, numbers, booleans and None."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode='json')
    if isinstance(value, (Event, TransactionReceipt)):
        return to_plain(value.to_dict())
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_plain(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class OutputFormatter:
    """Universal output formatter for CLI results."""

    def __init__(self, format_type: str = 'table', color_output: bool = True):
        self.format_type = format_type
        self.color_output = color_output and sys.stdout.isatty()
        self._renderers: Dict[str, Callable[..., str]] = {
            'json': self.format_json,
            'yaml': self.format_yaml,
            'table': self.format_table,
        }

    def format(self, data: Any, headers: Optional[List[str]] = None) -> str:
        """
        Format data according to the configured format type.

        Args:
            data: Result to format
            headers: Column order for list tables (ignored by JSON and YAML)

        Returns:
            Rendered text without a trailing newline
        """
        renderer = self._renderers.get(self.format_type, self.format_table)
        if renderer is self.format_table:
            return renderer(data, headers)
        return renderer(data)

    def format_json(self, data: Any) -> str:
        return json.dumps(to_plain(data), indent=2)

    def format_yaml(self, data: Any) -> str:
        rendered = yaml.safe_dump(to_plain(data), default_flow_style=False, sort_keys=False)
        return rendered.rstrip('\n')

    def format_table(self, data: Any, headers: Optional[List[str]] = None) -> str:
        plain = to_plain(data)
        if isinstance(plain, dict):
            return self._key_value_table(plain)
        if isinstance(plain, list):
            return self._row_table(plain, headers)
        return str(plain)

    def _key_value_table(self, data: Dict[str, Any]) -> str:
        rows = [(self._style(key, 'key'), self._cell(value)) for key, value in data.items()]
        return tabulate(rows, tablefmt='plain')

    def _row_table(self, rows: List[Any], headers: Optional[List[str]] = None) -> str:
        if not rows:
            return "No data available"
        if not all(isinstance(row, dict) for row in rows):
            return '\n'.join(self._cell(row) for row in rows)

        columns = headers or list(rows[0])
        body = [[self._cell(row.get(column, '')) for column in columns] for row in rows]
        return tabulate(body, headers=[self._style(c, 'header') for c in columns], tablefmt='grid')

    def _cell(self, value: Any) -> str:
        """Render one table cell."""
        if value is None:
            return self._style('null', 'null')
        if isinstance(value, bool):
            return self._style(str(value).lower(), 'bool')
        if isinstance(value, (int, float)):
            return self._style(str(value), 'number')
        if isinstance(value, str):
            return self._style(value, 'address') if is_address(value) else value
        if isinstance(value, dict):
            return f"<{len(value)} items>"
        if len(value) > MAX_INLINE_ITEMS or not all(isinstance(v, (int, str)) for v in value):
            return f"[{len(value)} items]"
        return ', '.join(str(v) for v in value) or '-'

    def _style(self, text: str, style: str) -> str:
        if not self.color_output or style not in ANSI_STYLES:
            return text
        return f"{ANSI_STYLES[style]}{text}{ANSI_RESET}"
