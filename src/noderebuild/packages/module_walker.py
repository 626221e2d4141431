"""Dependency walker: decides which modules in a node_modules tree need rebuilding.

The walk has two phases:

1. Classification. Starting from the build root's package.json, every
   reachable dependency is resolved Node-style and tagged prod, optional or
   dev. Types propagate down the graph (a dependency of a dev dependency is
   dev, an optional dependency of a prod module is optional). When a module
   is reachable along several paths it keeps the most permissive type seen.
   A visited map keyed by resolved path stops re-expansion of a module
   unless a strictly more permissive path reaches it, which bounds the walk
   on cyclic or heavily hoisted trees.

2. Enumeration. Every node_modules root (the build root's plus hoisted
   ancestors up to the project root) is scanned, including scoped @scope
   directories and nested node_modules. Each physical module directory is
   visited once, keyed by its symlink-resolved path, and kept if it passes
   the type/only/extra/ignore filters and ships a binding.gyp.
"""

import logging
from pathlib import Path
from typing import AbstractSet, Iterable, Optional

from ..config import DependencyType, most_permissive, most_restrictive
from ..errors import ManifestReadError
from ..models import Module, module_display_name
from .manifest import DEPENDENCIES, DEV_DEPENDENCIES, OPTIONAL_DEPENDENCIES, dependency_names, read_manifest
from .project_root import resolve_module, search_for_node_modules

logger = logging.getLogger(__name__)

_ROOT_DEPENDENCY_BLOCKS = (
    (DEPENDENCIES, DependencyType.PROD),
    (OPTIONAL_DEPENDENCIES, DependencyType.OPTIONAL),
    (DEV_DEPENDENCIES, DependencyType.DEV),
)


class ModuleWalker:
    """Finds the deduplicated set of native modules to rebuild.

    Usage:
        walker = ModuleWalker(build_path, project_root, types, extra, only, ignore)
        modules = walker.find_modules()

    Args:
        build_path: Directory whose package.json and node_modules are walked
        project_root_path: Workspace root bounding the ancestor search
            (None bounds it at build_path)
        types: Dependency types to rebuild
        extra_modules: Names rebuilt regardless of their type
        only_modules: When not None, only these names are rebuilt
        ignore_modules: Names never rebuilt
    """

    def __init__(
        self,
        build_path: Path,
        project_root_path: Optional[Path],
        types: AbstractSet[DependencyType],
        extra_modules: AbstractSet[str],
        only_modules: Optional[AbstractSet[str]],
        ignore_modules: AbstractSet[str] = frozenset(),
    ) -> None:
        self.build_path = build_path
        self.project_root_path = project_root_path if project_root_path is not None else build_path
        self._types = frozenset(types)
        self._extra_modules = frozenset(extra_modules)
        self._only_modules = frozenset(only_modules) if only_modules is not None else None
        self._ignore_modules = frozenset(ignore_modules)

        # resolved module path -> most permissive type seen
        self._classified: dict[Path, DependencyType] = {}
        self._seen_node_modules: set[Path] = set()
        self._seen_modules: set[Path] = set()
        self.modules_to_rebuild: list[Module] = []

    # Phase 1: classification

    def walk_modules(self) -> None:
        """Classify every module reachable from the build root's manifest."""
        try:
            root_manifest = read_manifest(self.build_path)
        except ManifestReadError as e:
            logger.warning("Skipping dependency classification: %s", e)
            return

        stack: list[tuple[Path, DependencyType]] = []
        for block, dep_type in _ROOT_DEPENDENCY_BLOCKS:
            for name in dependency_names(root_manifest, block):
                self._push_resolved(stack, name, self.build_path, dep_type)

        while stack:
            module_path, dep_type = stack.pop()
            previous = self._classified.get(module_path)
            if previous is not None and previous.rank <= dep_type.rank:
                continue
            self._classified[module_path] = dep_type if previous is None else most_permissive(previous, dep_type)
            logger.debug("classified %s as %s", module_path, dep_type.value)

            try:
                manifest = read_manifest(module_path)
            except ManifestReadError as e:
                logger.warning("Not exploring dependencies of %s: %s", module_path, e)
                continue

            for name in dependency_names(manifest, DEPENDENCIES):
                self._push_resolved(stack, name, module_path, dep_type)
            for name in dependency_names(manifest, OPTIONAL_DEPENDENCIES):
                self._push_resolved(stack, name, module_path, most_restrictive(dep_type, DependencyType.OPTIONAL))

    def _push_resolved(
        self,
        stack: list[tuple[Path, DependencyType]],
        name: str,
        from_dir: Path,
        dep_type: DependencyType,
    ) -> None:
        module_path = resolve_module(name, from_dir, self.project_root_path)
        if module_path is None:
            logger.debug("%s is not installed (required from %s)", name, from_dir)
            return
        stack.append((module_path.resolve(), dep_type))

    def dependency_type_of(self, module_path: Path) -> Optional[DependencyType]:
        """Classification of a module after walk_modules(), or None if unreachable."""
        return self._classified.get(module_path.resolve())

    # Phase 2: enumeration

    @property
    def node_modules_paths(self) -> list[Path]:
        """node_modules roots to scan: the build root's first, then hoisted ancestors."""
        return search_for_node_modules(self.build_path, self.project_root_path)

    def find_all_modules_in(self, node_modules_path: Path) -> None:
        """Scan a node_modules tree and record the modules that need rebuilding.

        Safe to call repeatedly with overlapping roots; directories and
        modules already seen (by resolved path) are skipped.
        """
        pending = [node_modules_path]
        while pending:
            directory = pending.pop()
            real_directory = directory.resolve()
            if real_directory in self._seen_node_modules:
                continue
            self._seen_node_modules.add(real_directory)
            logger.debug("scanning: %s", real_directory)

            try:
                entries = sorted(directory.iterdir())
            except OSError as e:
                logger.warning("Cannot list %s: %s", directory, e)
                continue

            nested: list[Path] = []
            for entry in entries:
                # .bin, .package-lock.json, .pnpm and friends are not modules
                if entry.name.startswith(".") or not entry.is_dir():
                    continue
                if entry.name.startswith("@"):
                    nested.append(entry)
                    continue

                real_path = entry.resolve()
                if real_path in self._seen_modules:
                    continue
                self._seen_modules.add(real_path)

                module = Module(
                    path=real_path,
                    name=module_display_name(entry),
                    dependency_type=self._classified.get(real_path),
                )
                if self._should_rebuild(module):
                    self.modules_to_rebuild.append(module)

                child_node_modules = real_path / "node_modules"
                if child_node_modules.is_dir():
                    nested.append(child_node_modules)

            # Depth-first in directory order
            pending.extend(reversed(nested))

    def _should_rebuild(self, module: Module) -> bool:
        wanted = (module.dependency_type is not None and module.dependency_type in self._types) or module.name in self._extra_modules
        if not wanted:
            return False
        if self._only_modules is not None and module.name not in self._only_modules:
            return False
        if module.name in self._ignore_modules:
            logger.debug("ignoring %s (in ignore list)", module.name)
            return False
        return module.has_build_descriptor

    def find_modules(self, extra_roots: Iterable[Path] = ()) -> list[Module]:
        """Run both phases and return the modules to rebuild in discovery order.

        Args:
            extra_roots: Additional node_modules directories to scan after the
                ones found by the ancestor search
        """
        self.walk_modules()
        for node_modules_path in [*self.node_modules_paths, *extra_roots]:
            self.find_all_modules_in(node_modules_path)
        return list(self.modules_to_rebuild)
