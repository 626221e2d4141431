"""Rebuild configuration.

This module defines:
- BuildType: Debug or Release node-gyp configuration
- RebuildMode: Sequential or parallel scheduling of module builds
- DependencyType: prod/dev/optional dependency classification
- RebuildConfig: Immutable run configuration, created once by the caller

Design:
    RebuildConfig flows from the CLI (or a library caller) into the
    Rebuilder, which owns it read-only and hands it to every component it
    drives. All validation happens in RebuildConfig.create() so that the
    rest of the system can trust the values it receives.

Environment:
    GYP_MSVS_VERSION: Visual Studio toolset selection, forwarded to node-gyp
    NODE_REBUILD_GYP_DIR: Root of the node-gyp work/cache directories
    NODE_REBUILD_DEBUG=1 or DEBUG=node-rebuild: Enable debug logging
"""

import os
import platform
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from .errors import ConfigError

DEFAULT_NODE_VERSION = "22.6.0"
DEFAULT_HEADERS_URL = "https://nodejs.org/download/release"
DEFAULT_LIBRARY_URL = "https://content.cfx.re/mirrors/vendor/node"

# NODE_MODULE_VERSION by Node.js major version
NODE_ABI_VERSIONS: dict[int, int] = {
    14: 83,
    15: 88,
    16: 93,
    17: 102,
    18: 108,
    19: 111,
    20: 115,
    21: 120,
    22: 127,
    23: 131,
    24: 137,
}

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
    "armv7l": "arm",
    "armv6l": "arm",
}


class BuildType(Enum):
    """node-gyp build configuration."""

    DEBUG = "Debug"
    RELEASE = "Release"

    def __str__(self) -> str:
        """Return the value used in build/<variant>/ directory names."""
        return self.value


class RebuildMode(Enum):
    """How module builds are scheduled."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class DependencyType(Enum):
    """Dependency classification of a module relative to the build root."""

    PROD = "prod"
    OPTIONAL = "optional"
    DEV = "dev"

    @property
    def rank(self) -> int:
        """Permissiveness rank: lower is more permissive (prod < optional < dev)."""
        return _DEPENDENCY_RANK[self]

    @classmethod
    def from_string(cls, value: str) -> "DependencyType":
        """Convert a CLI/user string to a DependencyType.

        Raises:
            ConfigError: If the value is not one of prod, dev, optional
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigError(f"Unknown dependency type '{value}', expected one of: prod, dev, optional")


_DEPENDENCY_RANK = {
    DependencyType.PROD: 0,
    DependencyType.OPTIONAL: 1,
    DependencyType.DEV: 2,
}

DEFAULT_TYPES = (DependencyType.PROD, DependencyType.OPTIONAL)


def most_permissive(a: DependencyType, b: DependencyType) -> DependencyType:
    """Return whichever of two classifications is more permissive."""
    return a if a.rank <= b.rank else b


def most_restrictive(a: DependencyType, b: DependencyType) -> DependencyType:
    """Return whichever of two classifications is more restrictive."""
    return a if a.rank >= b.rank else b


def host_arch() -> str:
    """Host architecture in Node.js naming (x64, arm64, ia32, arm)."""
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def host_platform() -> str:
    """Host platform in Node.js naming (linux, darwin, win32, ...)."""
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def detect_libc_family() -> Optional[str]:
    """Detect the C library family on Linux.

    Returns:
        "glibc", "musl", or None when undetectable or not on Linux
    """
    if host_platform() != "linux":
        return None
    name, _version = platform.libc_ver()
    if name == "glibc":
        return "glibc"
    if any(Path("/lib").glob("ld-musl-*")):
        return "musl"
    return None


def get_gyp_dir() -> Path:
    """Root directory for node-gyp's dev/cache directories.

    Priority: NODE_REBUILD_GYP_DIR > ~/.node-rebuild-gyp
    """
    gyp_env = os.environ.get("NODE_REBUILD_GYP_DIR")
    if gyp_env:
        return Path(gyp_env).resolve()
    return Path.home() / ".node-rebuild-gyp"


def get_msvs_version() -> Optional[str]:
    """Return GYP_MSVS_VERSION if set."""
    return os.environ.get("GYP_MSVS_VERSION") or None


def is_debug_logging_enabled() -> bool:
    """Check the diagnostic logging switches."""
    if os.environ.get("NODE_REBUILD_DEBUG") == "1":
        return True
    debug_env = os.environ.get("DEBUG", "")
    return any(part.strip() in ("node-rebuild", "*") for part in debug_env.split(","))


def abi_for_node_version(node_version: str) -> str:
    """Look up the NODE_MODULE_VERSION for a Node.js release.

    Args:
        node_version: Version string such as "22.6.0" or "v20.1.0"

    Returns:
        ABI version as a string (e.g. "127")

    Raises:
        ConfigError: If the version is malformed or its ABI is unknown
    """
    major_str = node_version.lstrip("v").split(".")[0]
    try:
        major = int(major_str)
    except ValueError:
        raise ConfigError(f"Malformed node version: {node_version!r}")
    abi = NODE_ABI_VERSIONS.get(major)
    if abi is None:
        raise ConfigError(f"Unknown ABI for node {node_version}; pass --force-abi to set it explicitly")
    return str(abi)


def parse_force_abi(value: Union[int, str, None]) -> Optional[str]:
    """Validate a binary-interface version override.

    Raises:
        ConfigError: If the value is not a non-negative integer
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"force-abi must be a number, got {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ConfigError(f"force-abi must be a non-negative number, got {value}")
        return str(value)
    text = str(value).strip()
    if not text.isdigit():
        raise ConfigError(f"force-abi must be a number, got {value!r}")
    return str(int(text))


@dataclass(frozen=True)
class RebuildConfig:
    """Immutable configuration for a single rebuild run.

    Attributes:
        build_path: Directory whose node_modules tree is rebuilt (must be absolute)
        arch: Target architecture in Node.js naming
        abi: Target NODE_MODULE_VERSION
        build_type: Debug or Release
        mode: Sequential or parallel module builds
        force: Rebuild even when the cache marker matches
        types: Dependency types to rebuild
        only_modules: When set, only these module names are rebuilt
        extra_modules: Module names rebuilt regardless of dependency type
        ignore_modules: Module names never rebuilt
        node_version: Target Node.js version
        node_dir: Header directory override (None means download)
        node_lib_file: Import library override (None means download)
        headers_url: Base URL for node-v<version>-headers.tar.gz
        library_url: Base URL for libnode<major>.lib
        project_root_path: Workspace root for supplementary node_modules roots
        disable_pre_gyp_copy: Skip copying the built .node into bin/
        platform: Host platform in Node.js naming
        msvs_version: GYP_MSVS_VERSION forwarded to node-gyp
        gyp_dir: Root of node-gyp's dev/cache directories
    """

    build_path: Path
    arch: str
    abi: str
    build_type: BuildType
    mode: RebuildMode
    force: bool
    types: frozenset[DependencyType]
    only_modules: Optional[frozenset[str]]
    extra_modules: frozenset[str]
    ignore_modules: frozenset[str]
    node_version: str
    node_dir: Optional[Path]
    node_lib_file: Optional[Path]
    headers_url: str
    library_url: str
    project_root_path: Optional[Path]
    disable_pre_gyp_copy: bool
    platform: str
    msvs_version: Optional[str]
    gyp_dir: Path

    @classmethod
    def create(
        cls,
        build_path: Union[str, Path],
        *,
        arch: Optional[str] = None,
        force_abi: Union[int, str, None] = None,
        debug: bool = False,
        mode: Union[RebuildMode, str, None] = None,
        force: bool = False,
        types: Optional[Iterable[Union[DependencyType, str]]] = None,
        only_modules: Optional[Iterable[str]] = None,
        extra_modules: Iterable[str] = (),
        ignore_modules: Iterable[str] = (),
        node_version: Optional[str] = None,
        node_dir: Union[str, Path, None] = None,
        node_lib_file: Union[str, Path, None] = None,
        headers_url: Optional[str] = None,
        library_url: Optional[str] = None,
        project_root_path: Union[str, Path, None] = None,
        disable_pre_gyp_copy: bool = False,
    ) -> "RebuildConfig":
        """Create a validated RebuildConfig with defaults filled in.

        The build path is kept as given; the Rebuilder rejects relative
        paths before doing any work.

        Raises:
            ConfigError: On a malformed ABI override, unknown dependency
                type, unknown mode, or unknown ABI for the node version
        """
        version = (node_version or DEFAULT_NODE_VERSION).lstrip("v")
        abi = parse_force_abi(force_abi) or abi_for_node_version(version)

        if mode is None:
            resolved_mode = RebuildMode.SEQUENTIAL
        elif isinstance(mode, RebuildMode):
            resolved_mode = mode
        else:
            try:
                resolved_mode = RebuildMode(mode)
            except ValueError:
                raise ConfigError(f"Unknown rebuild mode '{mode}', expected sequential or parallel")

        resolved_types = frozenset(t if isinstance(t, DependencyType) else DependencyType.from_string(t) for t in (types if types is not None else DEFAULT_TYPES))

        return cls(
            build_path=Path(build_path),
            arch=arch or host_arch(),
            abi=abi,
            build_type=BuildType.DEBUG if debug else BuildType.RELEASE,
            mode=resolved_mode,
            force=force,
            types=resolved_types,
            only_modules=frozenset(only_modules) if only_modules is not None else None,
            extra_modules=frozenset(extra_modules),
            ignore_modules=frozenset(ignore_modules),
            node_version=version,
            node_dir=Path(node_dir) if node_dir else None,
            node_lib_file=Path(node_lib_file) if node_lib_file else None,
            headers_url=(headers_url or DEFAULT_HEADERS_URL).rstrip("/"),
            library_url=(library_url or DEFAULT_LIBRARY_URL).rstrip("/"),
            project_root_path=Path(project_root_path) if project_root_path else None,
            disable_pre_gyp_copy=disable_pre_gyp_copy,
            platform=host_platform(),
            msvs_version=get_msvs_version(),
            gyp_dir=get_gyp_dir(),
        )

    @property
    def debug(self) -> bool:
        """True for Debug builds."""
        return self.build_type == BuildType.DEBUG

    @property
    def meta_data(self) -> str:
        """Cache marker content for this target: "<arch>--<abi>"."""
        return f"{self.arch}--{self.abi}"

    @property
    def node_major_version(self) -> str:
        """Major component of the target node version."""
        return self.node_version.split(".")[0]
