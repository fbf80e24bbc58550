"""Output formatting for CLI commands

Command results go to stdout as JSON unless ``--human`` is given.
Diagnostics and errors go to stderr so stdout stays machine-readable.
"""

import json
from typing import Any, Dict, Iterable, Optional

from rich.console import Console
from rich.markup import escape


class OutputWriter:
    """Writes command results and diagnostics"""

    def __init__(
        self,
        human: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.human = human
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    def emit(self, payload: Dict[str, Any], human_lines: Iterable[str] = ()) -> None:
        """Write a command result in the selected format"""
        if self.human:
            for line in human_lines:
                self.console.print(line)
        else:
            self.console.print_json(json.dumps(payload))

    def info(self, message: str) -> None:
        """Progress message; suppressed by --quiet"""
        if not self.quiet:
            self.err_console.print(escape(message))

    def prompt(self, message: str) -> None:
        """Instruction the user must act on; shown even with --quiet"""
        self.err_console.print(escape(message))

    def error(self, message: str, remediation: Optional[str] = None) -> None:
        self.err_console.print(f"[red]error:[/red] {escape(message)}")
        if remediation:
            self.err_console.print(escape(remediation))

    def error_json(self, kind: str, message: str, action: Optional[str] = None) -> None:
        """Structured error on stdout for scripts; only in JSON mode"""
        if self.human:
            return
        payload = {"error": kind, "message": message}
        if action:
            payload["action"] = action
        self.console.print_json(json.dumps(payload))
