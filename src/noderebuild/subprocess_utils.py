"""Subprocess utilities for platform-safe process execution.

Wraps the subprocess module so that every child process node-rebuild starts
gets the same platform defaults: no console window flashing on Windows and
no inherited console input handle. run_captured() is the single
fire-and-await-exit call used to drive build workers.
"""

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def _apply_platform_defaults(kwargs: dict[str, Any]) -> dict[str, Any]:
    """OR platform creation flags into kwargs and default stdin to DEVNULL."""
    default_flags = get_subprocess_creation_flags()
    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    # Child processes must not steal keystrokes from the parent terminal
    if "stdin" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL
    return kwargs


def safe_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """Execute subprocess.run with platform-specific flags.

    Args:
        cmd: Command and arguments
        **kwargs: Additional arguments passed to subprocess.run; an explicit
            creationflags is OR'd with the platform default and an explicit
            stdin is used as-is

    Returns:
        CompletedProcess result from subprocess.run
    """
    return subprocess.run(cmd, **_apply_platform_defaults(kwargs))


def safe_popen(cmd: list[str], **kwargs: Any) -> subprocess.Popen:
    """Execute subprocess.Popen with platform-specific flags.

    Same defaults as safe_run(), for callers that need the process handle.
    """
    return subprocess.Popen(cmd, **_apply_platform_defaults(kwargs))


@dataclass(frozen=True)
class CapturedProcess:
    """Exit status and combined output of a finished child process."""

    returncode: int
    output: str

    @property
    def success(self) -> bool:
        """True if the process exited with status 0."""
        return self.returncode == 0


def run_captured(
    cmd: list[str],
    input_text: str,
    cwd: Union[str, Path, None] = None,
    env: Optional[dict[str, str]] = None,
) -> CapturedProcess:
    """Run a child process, feed it input, and capture stdout+stderr together.

    Blocks until the child exits. Output is decoded as UTF-8 with
    replacement so that compiler output in a legacy code page never raises.

    Args:
        cmd: Command and arguments
        input_text: Text written to the child's stdin before it is closed
        cwd: Working directory for the child
        env: Environment for the child (defaults to the current environment)

    Returns:
        CapturedProcess with the exit code and combined output
    """
    proc = safe_popen(
        cmd,
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        cwd=str(cwd) if cwd is not None else None,
        env=env,
    )
    stdout, _ = proc.communicate(input=input_text.encode("utf-8"))
    return CapturedProcess(
        returncode=proc.returncode,
        output=(stdout or b"").decode("utf-8", errors="replace"),
    )
