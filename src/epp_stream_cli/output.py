"""
CLI Output

Renders what the CLI shows: a server greeting or the effective connection
settings, as an aligned table, as JSON, or as the raw greeting XML.
"""

import json
import sys
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional, Union

from epp_stream.models import Greeting

# Display label for each greeting field, in print order
GREETING_LABELS = (
    ("server_id", "Server"),
    ("server_date", "Date"),
    ("version", "Versions"),
    ("lang", "Languages"),
    ("obj_uris", "Objects"),
    ("ext_uris", "Extensions"),
)


def greeting_rows(greeting: Greeting) -> Dict[str, Any]:
    """Label greeting fields for display, leaving out the empty ones."""
    rows = {}
    for name, label in GREETING_LABELS:
        value = getattr(greeting, name)
        if value:
            rows[label] = value
    return rows


def render_table(rows: Dict[str, Any]) -> str:
    """
    Render rows as ``label  value`` lines.

    Multi-valued fields continue on following lines under the value column.
    """
    if not rows:
        return "No data"

    width = max(len(label) for label in rows) + 2
    lines = []
    for label, value in rows.items():
        values = value if isinstance(value, (list, tuple)) and value else [value]
        lines.append(f"{label.ljust(width)}{_cell(values[0])}")
        lines.extend(" " * width + _cell(extra) for extra in values[1:])
    return "\n".join(lines)


def render_json(data: Union[Greeting, Dict[str, Any]]) -> str:
    """Render a greeting (by field name) or settings dict as JSON."""
    if isinstance(data, Greeting):
        data = asdict(data)
    return json.dumps(data, indent=2, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (list, tuple)):
        return "(none)"
    return str(value)


def print_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"ERROR: {message}", file=sys.stderr)


class OutputFormatter:
    """Prints command results in the format chosen on the command line."""

    def __init__(self, format: str = "table", quiet: bool = False):
        self.format = format
        self.quiet = quiet

    def output(self, data: Union[Greeting, Dict[str, Any]], raw_xml: Optional[bytes] = None) -> None:
        """
        Print a greeting or settings dict.

        Args:
            data: Parsed greeting or label/value settings
            raw_xml: Frame the greeting was parsed from, for xml format
        """
        if self.format == "xml":
            if raw_xml is None:
                print_error("No XML to show; use table or json format")
                return
            print(raw_xml.decode("utf-8", errors="replace"))
        elif self.format == "json":
            print(render_json(data))
        elif isinstance(data, Greeting):
            print(render_table(greeting_rows(data)))
        else:
            print(render_table(data))

    def success(self, message: str) -> None:
        if not self.quiet:
            print(f"SUCCESS: {message}")

    def info(self, message: str) -> None:
        if not self.quiet:
            print(f"INFO: {message}")
