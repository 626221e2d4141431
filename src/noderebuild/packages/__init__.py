"""Dependency tree and remote asset handling for node-rebuild.

This package finds the native modules that need rebuilding and fetches the
target runtime's headers and import library.
"""

from .fetcher import ResponseKind, fetch
from .manifest import read_manifest
from .module_walker import ModuleWalker
from .project_root import get_project_root_path, resolve_module, search_for_node_modules
from .runtime_assets import RuntimeAssets, ensure_runtime_assets

__all__ = [
    "ModuleWalker",
    "ResponseKind",
    "RuntimeAssets",
    "ensure_runtime_assets",
    "fetch",
    "get_project_root_path",
    "read_manifest",
    "resolve_module",
    "search_for_node_modules",
]
