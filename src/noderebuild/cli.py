"""
Command-line interface for node-rebuild.

This module provides the `node-rebuild` tool, which rebuilds the native
modules of a node_modules tree against a specific Node.js runtime.

Examples:
    node-rebuild                               # Rebuild the project in the current directory
    node-rebuild -m app -z 20.11.1             # Target node 20.11.1
    node-rebuild -f -p                         # Force, build all modules in parallel
    node-rebuild -o sqlite3,bcrypt -b          # Debug build of two modules only
"""

import argparse
import logging
import sys
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rich.console import Console

from . import __version__
from .config import DEFAULT_NODE_VERSION, RebuildConfig, RebuildMode, is_debug_logging_enabled
from .errors import BuildFailure, ConfigError, RebuildError
from .events import Lifecycle
from .models import ModulePhase
from .output import init_timer, set_verbose
from .packages.manifest import MANIFEST_NAME
from .packages.project_root import get_project_root_path
from .progress_display import RebuildProgressDisplay
from .rebuilder import Rebuilder

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class RebuildArgs:
    """Parsed arguments for a rebuild."""

    module_dir: Optional[Path] = None
    force: bool = False
    arch: Optional[str] = None
    extra_modules: list[str] = field(default_factory=list)
    only_modules: Optional[list[str]] = None
    ignore_modules: list[str] = field(default_factory=list)
    dist_url: Optional[str] = None
    types: Optional[list[str]] = None
    mode: Optional[RebuildMode] = None
    debug: bool = False
    force_abi: Optional[str] = None
    disable_pre_gyp_copy: bool = False
    node_dir: Optional[Path] = None
    node_lib_file: Optional[Path] = None
    node_version: str = DEFAULT_NODE_VERSION
    verbose: bool = False


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger: WARNING by default, DEBUG when verbose or debug env is set."""
    level = logging.DEBUG if verbose or is_debug_logging_enabled() else logging.WARNING
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(handler)


def split_list(value: Optional[str]) -> Optional[list[str]]:
    """Split a comma separated flag value, dropping empty items."""
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def resolve_module_dir(module_dir: Optional[Path], cwd: Path) -> Path:
    """Absolute build root from --module-dir, or the current directory.

    Raises:
        ConfigError: If no --module-dir was given and cwd has no package.json
    """
    if module_dir is not None:
        return (cwd / module_dir).resolve()
    if (cwd / MANIFEST_NAME).is_file():
        return cwd.resolve()
    raise ConfigError('Unable to find parent node_modules directory, specify it via --module-dir, E.g. "--module-dir ." for the current directory')


def build_config(args: RebuildArgs, cwd: Path) -> RebuildConfig:
    """Turn parsed arguments into a validated RebuildConfig."""
    return RebuildConfig.create(
        resolve_module_dir(args.module_dir, cwd),
        arch=args.arch,
        force_abi=args.force_abi,
        debug=args.debug,
        mode=args.mode,
        force=args.force,
        types=args.types,
        only_modules=args.only_modules,
        extra_modules=args.extra_modules,
        ignore_modules=args.ignore_modules,
        node_version=args.node_version,
        node_dir=args.node_dir,
        node_lib_file=args.node_lib_file,
        headers_url=args.dist_url,
        project_root_path=get_project_root_path(cwd),
        disable_pre_gyp_copy=args.disable_pre_gyp_copy,
    )


def rebuild_command(args: RebuildArgs, console: Optional[Console] = None) -> None:
    """Rebuild native modules and exit with the run's status.

    Exit codes: 0 on success, 1 on any error, 130 on Ctrl-C.
    """
    console = console if console is not None else Console()
    init_timer()
    set_verbose(args.verbose)

    try:
        config = build_config(args, Path.cwd())
        lifecycle = Lifecycle()
        display = RebuildProgressDisplay(
            console=console,
            title=f"Rebuilding native modules for node v{config.node_version} ({config.arch}, abi {config.abi})",
        )
        lifecycle.subscribe(display)
        rebuilder = Rebuilder(config, lifecycle)

        with display:
            try:
                report = rebuilder.rebuild()
            except RebuildError as e:
                raised = e.module_name if isinstance(e, BuildFailure) else None
                for build in rebuilder.report.builds:
                    if build.phase == ModulePhase.FAILED and build.name != raised:
                        display.mark_failed(build.name, build.error_message)
                if isinstance(e, BuildFailure):
                    display.mark_failed(e.module_name, f"exit code {e.exit_code}")
                raise

        console.print()
        console.print(f"[bold green]✓ Rebuild Complete[/bold green] ({len(report.built)} built, {len(report.skipped)} skipped, {report.total_elapsed:.1f}s)")
        sys.exit(0)

    except KeyboardInterrupt:
        print("\n\033[1;33m✗ Rebuild interrupted\033[0m", file=sys.stderr)
        sys.exit(130)  # Standard exit code for SIGINT

    except RebuildError as e:
        print("\n\033[1;31m✗ Rebuild Failed\033[0m", file=sys.stderr)
        print(f"\n{e}\n", file=sys.stderr)
        print(traceback.format_exc(), file=sys.stderr)
        sys.exit(1)

    except Exception as e:
        print("\n\033[1;31m✗ An unhandled error occurred inside node-rebuild\033[0m", file=sys.stderr)
        print(f"\n{type(e).__name__}: {e}\n", file=sys.stderr)
        print(traceback.format_exc(), file=sys.stderr)
        sys.exit(1)


def create_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="node-rebuild",
        description="Rebuild native node modules against a specific Node.js runtime",
        epilog='Example: node-rebuild --module-dir . --node-version 22.6.0',
    )
    parser.add_argument("--version", action="version", version=f"node-rebuild {__version__}")
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Force rebuilding modules, even if we would skip it otherwise",
    )
    parser.add_argument(
        "-a",
        "--arch",
        default=None,
        help="Override the target architecture to something other than your system's",
    )
    parser.add_argument(
        "-m",
        "--module-dir",
        type=Path,
        default=None,
        help="The path to the directory whose node_modules should be rebuilt (default: current directory)",
    )
    parser.add_argument(
        "-w",
        "--which-module",
        default=None,
        help="A specific module to build, or comma separated list of modules. These modules are rebuilt even if their dependency type is not selected by --types.",
    )
    parser.add_argument(
        "-o",
        "--only",
        default=None,
        help="Only build specified module, or comma separated list of modules. All others are ignored.",
    )
    parser.add_argument(
        "-i",
        "--ignore",
        default=None,
        help="Comma separated list of modules never to rebuild",
    )
    parser.add_argument(
        "-d",
        "--dist-url",
        default=None,
        help="Custom base URL for the node header tarball",
    )
    parser.add_argument(
        "-t",
        "--types",
        default=None,
        help='The types of dependencies to rebuild. Comma separated list of "prod", "dev" and "optional". Default is "prod,optional"',
    )
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "-p",
        "--parallel",
        action="store_true",
        help="Rebuild all modules in parallel",
    )
    mode_group.add_argument(
        "-s",
        "--sequential",
        action="store_true",
        help="Rebuild modules sequentially (default)",
    )
    parser.add_argument(
        "-b",
        "--debug",
        action="store_true",
        help="Build debug version of modules",
    )
    parser.add_argument(
        "--force-abi",
        default=None,
        help="Override the ABI version of the node runtime you are targeting",
    )
    parser.add_argument(
        "--disable-pre-gyp-copy",
        action="store_true",
        help="Disables the pre-gyp copy step",
    )
    parser.add_argument(
        "-x",
        "--node-dir",
        type=Path,
        default=None,
        help="Use an existing node header directory instead of downloading one",
    )
    parser.add_argument(
        "-y",
        "--node-lib-file",
        type=Path,
        default=None,
        help="Use an existing node import library instead of downloading one",
    )
    parser.add_argument(
        "-z",
        "--node-version",
        default=DEFAULT_NODE_VERSION,
        help=f"Target Node.js version (default: {DEFAULT_NODE_VERSION})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logging",
    )
    return parser


def parse_args(argv: Optional[list[str]] = None) -> RebuildArgs:
    """Parse command-line arguments into RebuildArgs."""
    parsed = create_parser().parse_args(argv)

    mode: Optional[RebuildMode] = None
    if parsed.parallel:
        mode = RebuildMode.PARALLEL
    elif parsed.sequential:
        mode = RebuildMode.SEQUENTIAL

    return RebuildArgs(
        module_dir=parsed.module_dir,
        force=parsed.force,
        arch=parsed.arch,
        extra_modules=split_list(parsed.which_module) or [],
        only_modules=split_list(parsed.only),
        ignore_modules=split_list(parsed.ignore) or [],
        dist_url=parsed.dist_url,
        types=split_list(parsed.types),
        mode=mode,
        debug=parsed.debug,
        force_abi=parsed.force_abi,
        disable_pre_gyp_copy=parsed.disable_pre_gyp_copy,
        node_dir=parsed.node_dir,
        node_lib_file=parsed.node_lib_file,
        node_version=parsed.node_version,
        verbose=parsed.verbose,
    )


def main(argv: Optional[list[str]] = None) -> None:
    """node-rebuild entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)
    rebuild_command(args)


if __name__ == "__main__":
    main()
