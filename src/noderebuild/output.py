"""
Timestamped console output for node-rebuild.

User-facing lines (download progress, warnings about module paths, dumps
of failed build output) are written here rather than through the logging
module, so they stay visible without any logging configuration. Every line
is prefixed with the elapsed time since the run started in MM:SS.cc format.

Example output:
    00:00.02 downloading: https://nodejs.org/download/release/v22.6.0/node-v22.6.0-headers.tar.gz
    00:01.37 response came back OK
    00:01.51 WARNING: Attempting to build a module with a space in the path

Usage:
    from noderebuild.output import log, log_warning, log_build_output

    log("downloading: https://...")
    log_warning("Attempting to build a module with a space in the path")
    log_build_output(captured_output)
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: Optional[TextIO] = None
_error_stream: Optional[TextIO] = None
_verbose: bool = True


def init_timer(output_stream: Optional[TextIO] = None, error_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer and optionally redirect output.

    Args:
        output_stream: Stream for informational lines (defaults to sys.stdout)
        error_stream: Stream for warnings, errors and build output (defaults to sys.stderr)
    """
    global _start_time, _output_stream, _error_stream
    _start_time = time.time()
    _output_stream = output_stream
    _error_stream = error_stream


def set_verbose(verbose: bool) -> None:
    """Enable or disable verbose_only lines."""
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    """Seconds elapsed since init_timer() (initialized on first use)."""
    global _start_time
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore[operator]


def format_timestamp() -> str:
    """Format the current elapsed time as MM:SS.cc."""
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _out() -> TextIO:
    return _output_stream if _output_stream is not None else sys.stdout


def _err() -> TextIO:
    return _error_stream if _error_stream is not None else sys.stderr


def _print(message: str, stream: TextIO) -> None:
    stream.write(f"{format_timestamp()} {message}\n")
    stream.flush()


def log(message: str, verbose_only: bool = False) -> None:
    """
    Log an informational message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(message, _out())


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """Log an indented detail line."""
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}", _out())


def log_warning(message: str) -> None:
    """Log a warning to the error stream."""
    _print(f"WARNING: {message}", _err())


def log_error(message: str) -> None:
    """Log an error to the error stream."""
    _print(f"ERROR: {message}", _err())


def log_build_output(output: str) -> None:
    """
    Dump captured build tool output verbatim to the error stream.

    The output is not timestamped so that compiler diagnostics stay
    copy-pasteable.

    Args:
        output: Combined stdout/stderr captured from a build worker
    """
    stream = _err()
    stream.write(output)
    if output and not output.endswith("\n"):
        stream.write("\n")
    stream.flush()


class TimedLogger:
    """
    Context manager that logs an operation and how long it took.

    Usage:
        with TimedLogger("Downloading node headers"):
            ...
        # logs "Downloading node headers..." then "Done (1.23s)"
    """

    def __init__(self, operation: str, verbose_only: bool = False):
        self.operation = operation
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        if exc_type is None:
            log_detail(f"Done ({time.time() - self.start_time:.2f}s)", verbose_only=self.verbose_only)
        return None

    def detail(self, message: str) -> None:
        """Log a detail line within this operation."""
        log_detail(message, verbose_only=self.verbose_only)
