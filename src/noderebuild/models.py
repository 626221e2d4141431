"""Data models for a rebuild run.

Defines the core dataclasses used throughout the rebuild:
- Module: A module directory discovered by the dependency walker
- ModulePhase: Enum tracking where a module is in the build state machine
- ModuleBuild: Per-module state for one run
- RebuildReport: Aggregated outcome of a run
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .config import DependencyType

BUILD_DESCRIPTOR = "binding.gyp"


def module_display_name(module_path: Path) -> str:
    """Derive a module's display name from its directory.

    Modules inside a scoped directory are qualified with the scope
    (``node_modules/@scope/name`` -> ``@scope/name``).
    """
    parent_name = module_path.parent.name
    if parent_name.startswith("@"):
        return f"{parent_name}/{module_path.name}"
    return module_path.name


@dataclass(frozen=True)
class Module:
    """A module directory found in the dependency tree.

    Attributes:
        path: Absolute, symlink-resolved module directory
        name: Display name (scope-qualified for scoped packages)
        dependency_type: Most permissive classification seen, or None if the
            module is not reachable from the build root's manifest
    """

    path: Path
    name: str
    dependency_type: Optional[DependencyType] = None

    @classmethod
    def at(cls, path: Path, dependency_type: Optional[DependencyType] = None) -> "Module":
        """Create a Module for a directory, deriving its display name."""
        return cls(path=path, name=module_display_name(path), dependency_type=dependency_type)

    @property
    def has_build_descriptor(self) -> bool:
        """True if the module ships a binding.gyp at its root."""
        return (self.path / BUILD_DESCRIPTOR).is_file()


class ModulePhase(Enum):
    """Phase of a module in the per-module build state machine."""

    DISCOVERED = "discovered"
    CACHE_CHECKED = "cache_checked"
    SKIPPED = "skipped"
    BUILDING = "building"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ModuleBuild:
    """State of one module's build within a run.

    Attributes:
        name: Module display name
        path: Module directory
        phase: Current phase
        skip_reason: Why the module was skipped ("cached" or "ignored")
        error_message: Failure detail if phase is FAILED
        start_time: Monotonic timestamp when the build started
        elapsed: Seconds spent in the build
    """

    name: str
    path: Path
    phase: ModulePhase = ModulePhase.DISCOVERED
    skip_reason: str = ""
    error_message: str = ""
    start_time: Optional[float] = None
    elapsed: float = 0.0

    def mark_started(self) -> None:
        """Record the start time and enter the BUILDING phase."""
        self.start_time = time.monotonic()
        self.phase = ModulePhase.BUILDING

    def update_elapsed(self) -> None:
        """Update elapsed time from start_time."""
        if self.start_time is not None:
            self.elapsed = time.monotonic() - self.start_time

    def skip(self, reason: str) -> None:
        """Mark this module as skipped."""
        self.phase = ModulePhase.SKIPPED
        self.skip_reason = reason

    def finish(self) -> None:
        """Mark this module as successfully built."""
        self.phase = ModulePhase.DONE
        self.update_elapsed()

    def fail(self, error: str) -> None:
        """Mark this module as failed with an error message."""
        self.phase = ModulePhase.FAILED
        self.error_message = error
        self.update_elapsed()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "path": str(self.path),
            "phase": self.phase.value,
            "skip_reason": self.skip_reason,
            "error_message": self.error_message,
            "elapsed": self.elapsed,
        }


@dataclass
class RebuildReport:
    """Outcome of a completed rebuild run.

    Attributes:
        builds: Per-module build records in scheduling order
        total_elapsed: Wall-clock seconds for the whole run
    """

    builds: list[ModuleBuild] = field(default_factory=list)
    total_elapsed: float = 0.0

    def _names_in(self, phase: ModulePhase) -> list[str]:
        return [b.name for b in self.builds if b.phase == phase]

    @property
    def built(self) -> list[str]:
        """Names of modules rebuilt in this run."""
        return self._names_in(ModulePhase.DONE)

    @property
    def skipped(self) -> list[str]:
        """Names of modules skipped (cached or ignored)."""
        return self._names_in(ModulePhase.SKIPPED)

    @property
    def failed(self) -> list[str]:
        """Names of modules whose build failed."""
        return self._names_in(ModulePhase.FAILED)

    @property
    def success(self) -> bool:
        """True if no module failed."""
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "builds": [b.to_dict() for b in self.builds],
            "total_elapsed": self.total_elapsed,
            "success": self.success,
        }
