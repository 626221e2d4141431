"""Rebuild orchestrator.

Coordinates one rebuild run:
1. Validates the build root and acquires the target runtime's headers and
   import library
2. Emits START and runs the ModuleWalker to find native modules
3. Drives every module (plus the build root itself) through ModuleBuilder,
   one at a time or all at once on a thread pool
4. Collects per-module outcomes into a RebuildReport

Sequential runs stop at the first failure. Parallel runs never cancel a
started build; they wait for every module to settle and then re-raise the
first failure observed.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Iterable, Optional

from .build.module_builder import ModuleBuilder
from .config import RebuildConfig, RebuildMode
from .errors import ConfigError
from .events import Lifecycle, LifecycleEvent, LifecycleListener
from .models import Module, ModuleBuild, RebuildReport
from .packages.module_walker import ModuleWalker
from .packages.runtime_assets import RuntimeAssets, ensure_runtime_assets

logger = logging.getLogger(__name__)


class Rebuilder:
    """Runs one rebuild for a configuration.

    Args:
        config: Run configuration (build_path must be absolute)
        lifecycle: Event broadcaster; a private one is created if omitted
    """

    def __init__(self, config: RebuildConfig, lifecycle: Optional[Lifecycle] = None) -> None:
        self.config = config
        self.lifecycle = lifecycle if lifecycle is not None else Lifecycle()
        self.report = RebuildReport()
        self.assets: Optional[RuntimeAssets] = None
        self._report_lock = threading.Lock()

        logger.debug(
            "rebuilding with args: path=%s arch=%s abi=%s extra=%s force=%s types=%s build_type=%s mode=%s",
            config.build_path,
            config.arch,
            config.abi,
            sorted(config.extra_modules),
            config.force,
            sorted(t.value for t in config.types),
            config.build_type,
            config.mode.value,
        )

    def rebuild(self) -> RebuildReport:
        """Run the rebuild.

        Returns:
            Report of built, skipped and failed modules

        Raises:
            ConfigError: If the build root is not absolute
            NetworkError: If the runtime assets could not be downloaded
            BuildFailure: If a module's build failed
            CacheIOError: If a module's artifact or marker could not be written
        """
        start_time = time.monotonic()
        if not self.config.build_path.is_absolute():
            raise ConfigError(f"Expected build path to be an absolute path, got {self.config.build_path}")

        self.assets = ensure_runtime_assets(self.config)
        self.lifecycle.emit(LifecycleEvent.START)

        modules = self.find_modules()
        builder = ModuleBuilder(self.config, self.assets, self.lifecycle)
        try:
            if self.config.mode == RebuildMode.PARALLEL:
                self._rebuild_parallel(builder, modules)
            else:
                self._rebuild_sequential(builder, modules)
        finally:
            self.report.total_elapsed = time.monotonic() - start_time
        return self.report

    def find_modules(self) -> list[Module]:
        """Modules to drive through the build unit: walker results, then the build root."""
        walker = ModuleWalker(
            build_path=self.config.build_path,
            project_root_path=self.config.project_root_path,
            types=self.config.types,
            extra_modules=self.config.extra_modules,
            only_modules=self.config.only_modules,
            ignore_modules=self.config.ignore_modules,
        )
        modules = walker.find_modules()
        root_path = self.config.build_path.resolve()
        if all(m.path != root_path for m in modules):
            modules.append(Module.at(root_path))
        return modules

    def rebuild_module_at(self, builder: ModuleBuilder, module: Module) -> Optional[ModuleBuild]:
        """Announce and build one module; modules without binding.gyp are passed over.

        Returns:
            The module's build record, or None if it has nothing to build
        """
        if not module.has_build_descriptor:
            logger.debug("no binding.gyp in %s, nothing to build", module.path)
            return None

        record = ModuleBuild(name=module.name, path=module.path)
        with self._report_lock:
            self.report.builds.append(record)
        self.lifecycle.emit(LifecycleEvent.MODULE_FOUND, module.name)
        return builder.build(module, record)

    def _rebuild_sequential(self, builder: ModuleBuilder, modules: list[Module]) -> None:
        for module in modules:
            self.rebuild_module_at(builder, module)

    def _rebuild_parallel(self, builder: ModuleBuilder, modules: list[Module]) -> None:
        buildable = [m for m in modules if m.has_build_descriptor]
        if not buildable:
            return

        first_error: Optional[BaseException] = None
        with ThreadPoolExecutor(max_workers=len(buildable), thread_name_prefix="node-rebuild") as executor:
            futures = {executor.submit(self.rebuild_module_at, builder, module): module for module in buildable}
            for future in as_completed(futures):
                error = future.exception()
                if error is None:
                    continue
                logger.debug("parallel build of %s failed: %s", futures[future].name, error)
                if first_error is None:
                    first_error = error

        if first_error is not None:
            raise first_error


class RebuildResult:
    """Handle for a rebuild running on a background thread.

    Usage:
        result = rebuild(config, listeners=[display])
        result.lifecycle.on(LifecycleEvent.MODULE_DONE, print)
        report = result.wait()
    """

    def __init__(self, future: "Future[RebuildReport]", lifecycle: Lifecycle) -> None:
        self._future = future
        self.lifecycle = lifecycle

    def wait(self, timeout: Optional[float] = None) -> RebuildReport:
        """Block until the run finishes.

        Raises:
            TimeoutError: If the run did not finish within timeout seconds
            RebuildError: Whatever the run raised
        """
        return self._future.result(timeout=timeout)

    def done(self) -> bool:
        """True once the run has finished, successfully or not."""
        return self._future.done()


def rebuild(config: RebuildConfig, listeners: Iterable[LifecycleListener] = ()) -> RebuildResult:
    """Start a rebuild on a background thread.

    Listeners are subscribed before the run starts, so they see START.

    Args:
        config: Run configuration
        listeners: Lifecycle listeners to subscribe

    Returns:
        Handle exposing the lifecycle and the eventual report
    """
    lifecycle = Lifecycle()
    for listener in listeners:
        lifecycle.subscribe(listener)

    rebuilder = Rebuilder(config, lifecycle)
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="node-rebuild-run")
    future = executor.submit(rebuilder.rebuild)
    executor.shutdown(wait=False)
    return RebuildResult(future, lifecycle)
