"""node-rebuild - rebuild native node modules against a specific Node.js runtime."""

__version__ = "1.0.0"

from .config import BuildType, DependencyType, RebuildConfig, RebuildMode
from .errors import (
    BuildDescriptorMissing,
    BuildFailure,
    CacheIOError,
    ConfigError,
    ManifestReadError,
    NetworkError,
    RebuildError,
)
from .events import Lifecycle, LifecycleEvent, LifecycleListener, NullListener
from .models import Module, ModuleBuild, ModulePhase, RebuildReport
from .rebuilder import Rebuilder, RebuildResult, rebuild

__all__ = [
    "BuildDescriptorMissing",
    "BuildFailure",
    "BuildType",
    "CacheIOError",
    "ConfigError",
    "DependencyType",
    "Lifecycle",
    "LifecycleEvent",
    "LifecycleListener",
    "ManifestReadError",
    "Module",
    "ModuleBuild",
    "ModulePhase",
    "NetworkError",
    "NullListener",
    "RebuildConfig",
    "RebuildError",
    "RebuildMode",
    "RebuildReport",
    "RebuildResult",
    "Rebuilder",
    "__version__",
    "rebuild",
]
