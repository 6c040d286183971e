"""
Console output of check results.
"""

import os
import sys
import threading
from collections import Counter
from typing import AsyncIterator, Optional, TextIO

from .errors import ProbeFailure


class ConsoleOutput:
    """
    Handles console output of mismatches and errors.

    Mismatch lines go to stdout unmodified so they can be piped; only error
    messages are colorized.
    """

    def __init__(
        self,
        use_colors: bool = True,
        stream: Optional[TextIO] = None,
        error_stream: Optional[TextIO] = None,
    ):
        """
        Initialize console output handler.

        Args:
            use_colors: Use ANSI color codes (if terminal supports)
            stream: Output for results, stdout by default
            error_stream: Output for errors, stderr by default
        """
        self._stream = stream
        self._error_stream = error_stream
        self.use_colors = use_colors and self._supports_color(self.error_stream)
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so redirected sys.stdout is honoured
        return self._stream or sys.stdout

    @property
    def error_stream(self) -> TextIO:
        return self._error_stream or sys.stderr

    @staticmethod
    def _supports_color(stream: TextIO) -> bool:
        """Check if terminal supports ANSI colors."""
        if not hasattr(stream, "isatty") or not stream.isatty():
            return False

        term = os.environ.get("TERM", "")
        if term in ("dumb", ""):
            return False

        return True

    def _colorize(self, text: str, color_code: str) -> str:
        if not self.use_colors:
            return text
        return f"\033[{color_code}m{text}\033[0m"

    def error(self, message: str) -> None:
        """Print error message in red."""
        with self._lock:
            print(self._colorize(message, "31"), file=self.error_stream)

    def print_failure(self, failure: ProbeFailure) -> None:
        """Print one mismatching pair with its reason."""
        with self._lock:
            print(failure.render(), file=self.stream, flush=True)

    def print_total(self, count: int) -> None:
        with self._lock:
            print(f"total mismatch: {count}", file=self.stream, flush=True)


async def report(
    failures: AsyncIterator[ProbeFailure],
    console: ConsoleOutput,
    by_code: Optional[Counter] = None,
) -> int:
    """
    Print failures as they arrive and count them.

    Args:
        failures: Failure stream, drained until it ends
        console: Where to print
        by_code: Optional counter updated per ErrorCode

    Returns:
        Number of failures printed
    """
    count = 0
    async for failure in failures:
        console.print_failure(failure)
        count += 1
        if by_code is not None:
            by_code[failure.error_code] += 1
    return count
