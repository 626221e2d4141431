"""Ancestor-directory lookups for npm/yarn/pnpm project layouts.

In a workspace the build root's own node_modules is often incomplete:
package managers hoist shared dependencies into node_modules directories
higher up, next to the lockfile. These helpers find the project root and
every node_modules directory between it and the build root.
"""

from pathlib import Path
from typing import Callable, Optional

LOCKFILE_NAMES = ("yarn.lock", "package-lock.json", "pnpm-lock.yaml")


def _ancestors(start: Path, root_path: Optional[Path]) -> list[Path]:
    """Directories from start up to root_path inclusive (or the filesystem root)."""
    current = start.resolve()
    stop = root_path.resolve() if root_path is not None else None
    chain = [current]
    while current != stop and current.parent != current:
        current = current.parent
        chain.append(current)
    return chain


def _traverse(
    start: Path,
    path_generator: Callable[[Path], Path],
    root_path: Optional[Path] = None,
    max_items: Optional[int] = None,
) -> list[Path]:
    """Collect existing generated paths while walking up from start.

    Args:
        start: Directory to start from
        path_generator: Maps an ancestor directory to the candidate path
        root_path: Last directory to consider (None walks to the filesystem root)
        max_items: Stop after this many hits

    Returns:
        Existing candidate paths, nearest first
    """
    found: list[Path] = []
    for directory in _ancestors(start, root_path):
        candidate = path_generator(directory)
        if candidate.exists():
            found.append(candidate)
            if max_items is not None and len(found) >= max_items:
                break
    return found


def get_project_root_path(cwd: Path) -> Path:
    """Find the project root by locating the nearest lockfile.

    Lockfile names are tried in order (yarn, npm, pnpm); the first name with
    a match anywhere up the tree wins.

    Args:
        cwd: Directory to start searching from

    Returns:
        Directory containing the lockfile, or cwd when none is found
    """
    for lockfile in LOCKFILE_NAMES:
        hits = _traverse(cwd, lambda d, name=lockfile: d / name, max_items=1)
        if hits:
            return hits[0].parent
    return cwd.resolve()


def search_for_node_modules(cwd: Path, root_path: Optional[Path] = None) -> list[Path]:
    """Every existing node_modules directory from cwd up to root_path, nearest first."""
    return _traverse(cwd, lambda d: d / "node_modules", root_path)


def resolve_module(name: str, from_dir: Path, root_path: Optional[Path] = None) -> Optional[Path]:
    """Resolve a dependency the way Node does: nearest node_modules/<name> upward.

    Args:
        name: Package name, possibly scoped ("@scope/pkg")
        from_dir: Directory of the module declaring the dependency
        root_path: Last directory to consider

    Returns:
        The module directory, or None if it is not installed
    """
    hits = _traverse(from_dir, lambda d: d / "node_modules" / name, root_path, max_items=1)
    return hits[0] if hits else None
