"""Per-module build unit.

Drives one module through:

    DISCOVERED -> CACHE_CHECKED -> SKIPPED
                               \\-> BUILDING -> DONE | FAILED

The compile itself happens in a worker process (noderebuild.build.worker)
so that node-gyp's environment and working directory are isolated per
module. Its combined output is held in memory and only shown when the
build fails.
"""

import logging
import os
import sys
from pathlib import Path

from ..config import RebuildConfig, RebuildMode
from ..errors import BuildDescriptorMissing, BuildFailure, RebuildError
from ..events import Lifecycle, LifecycleEvent
from ..models import Module, ModuleBuild, ModulePhase
from ..output import log_build_output, log_warning
from ..packages.runtime_assets import RuntimeAssets
from ..subprocess_utils import run_captured
from .build_args import build_args
from .build_cache import already_built, replace_existing_native_module, write_metadata
from .worker import BuildRequest

logger = logging.getLogger(__name__)

WORKER_MODULE = "noderebuild.build.worker"


class ModuleBuilder:
    """Builds single modules for one run.

    Thread-safe: parallel runs share one instance across pool threads, and
    each call only touches its own module's files and work directory.

    Args:
        config: Run configuration
        assets: Runtime headers/library passed to node-gyp
        lifecycle: Event broadcaster for skip/done events
    """

    def __init__(self, config: RebuildConfig, assets: RuntimeAssets, lifecycle: Lifecycle) -> None:
        self.config = config
        self.assets = assets
        self.lifecycle = lifecycle

    def work_dir_for(self, module: Module) -> Path:
        """node-gyp --devdir for a module; private per module in parallel mode."""
        if self.config.mode == RebuildMode.PARALLEL:
            return self.config.gyp_dir / "_p" / module.name
        return self.config.gyp_dir

    def build(self, module: Module, record: ModuleBuild) -> ModuleBuild:
        """Skip or rebuild one module, updating its record.

        Args:
            module: Module to build
            record: Per-run state for this module, updated in place

        Returns:
            The updated record

        Raises:
            BuildDescriptorMissing: If the module has no binding.gyp
            BuildFailure: If node-gyp exits non-zero
            CacheIOError: If the marker cannot be read, or the artifact copy
                or marker write fails
        """
        if not module.has_build_descriptor:
            raise BuildDescriptorMissing(str(module.path))

        if module.name in self.config.ignore_modules:
            logger.debug("skipping %s: in ignore list", module.name)
            return self._skip(module, record, "ignored")

        try:
            cached = not self.config.force and already_built(module.path, self.config)
        except RebuildError as e:
            record.fail(str(e))
            raise
        record.phase = ModulePhase.CACHE_CHECKED
        if cached:
            logger.debug("skipping %s: already built for %s", module.name, self.config.meta_data)
            return self._skip(module, record, "cached")

        record.mark_started()
        try:
            self._run_node_gyp(module)
            replace_existing_native_module(module.path, self.config)
            write_metadata(module.path, self.config)
        except RebuildError as e:
            record.fail(str(e))
            raise
        record.finish()
        logger.debug("built via node-gyp: %s (%.2fs)", module.name, record.elapsed)
        self.lifecycle.emit(LifecycleEvent.MODULE_DONE, module.name)
        return record

    def _skip(self, module: Module, record: ModuleBuild, reason: str) -> ModuleBuild:
        record.skip(reason)
        self.lifecycle.emit(LifecycleEvent.MODULE_SKIP, module.name)
        self.lifecycle.emit(LifecycleEvent.MODULE_DONE, module.name)
        return record

    def _run_node_gyp(self, module: Module) -> None:
        if " " in str(module.path):
            # node-gyp mishandles spaces (nodejs/node-gyp#65); warn and try anyway
            log_warning("Attempting to build a module with a space in the path")
            log_warning("See https://github.com/nodejs/node-gyp/issues/65#issuecomment-368820565 for reasons why this may not work")

        args = build_args(module.path, self.config, self.assets)
        logger.debug("rebuilding %s with args %s", module.name, args)
        request = BuildRequest(module_name=module.name, build_args=args, work_dir=str(self.work_dir_for(module)))

        env = dict(os.environ)
        if self.config.msvs_version:
            env["GYP_MSVS_VERSION"] = self.config.msvs_version

        # -P keeps the module directory (the cwd) off sys.path
        result = run_captured([sys.executable, "-P", "-m", WORKER_MODULE], request.to_json(), cwd=module.path, env=env)
        if not result.success:
            log_build_output(result.output)
            raise BuildFailure(module.name, str(module.path), result.returncode, result.output)
