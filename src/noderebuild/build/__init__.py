"""Per-module native build: node-gyp arguments, cache markers and the worker process."""

from .build_args import build_args
from .build_cache import already_built, replace_existing_native_module, write_metadata
from .module_builder import ModuleBuilder
from .worker import BuildRequest

__all__ = [
    "BuildRequest",
    "ModuleBuilder",
    "already_built",
    "build_args",
    "replace_existing_native_module",
    "write_metadata",
]
